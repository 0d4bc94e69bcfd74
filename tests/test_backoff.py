import asyncio

import pytest

from flowgate.backoff import Exponential


@pytest.mark.asyncio
async def test_wait_and_reset():
    b = Exponential(0.001, 0.002)
    assert b.duration() == 0.001
    await b.wait()
    assert b.duration() == 0.002
    await b.wait()
    assert b.duration() == 0.002
    b.reset()
    assert b.duration() == 0.001


def test_rejects_invalid_base():
    with pytest.raises(ValueError):
        Exponential(0, 0.002)


@pytest.mark.parametrize("maximum", [0.001, 0.001 - 1e-9])
def test_rejects_max_at_or_below_base(maximum):
    with pytest.raises(ValueError):
        Exponential(0.001, maximum)


@pytest.mark.asyncio
async def test_wait_cancelled():
    b = Exponential(3600, 7200)
    task = asyncio.create_task(b.wait())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert b.duration() == 3600