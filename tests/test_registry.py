import threading

import pytest

from flowgate.domain import Backend
from flowgate.registry import InMemory


@pytest.mark.parametrize(
    "backends",
    [
        None,
        [Backend.create("10.0.0.1:80", 5, 0)],
        [Backend.create("a:1", 2, 0), Backend.create("b:2", 3, 1), Backend.create("a:1", 7, 2)],
    ],
)
def test_new(backends):
    r = InMemory(backends)
    assert r.version() == 1
    snap = r.snapshot()
    want = backends or []
    assert len(snap) == len(want)
    assert all(s is w for s, w in zip(snap, want))


def test_snapshot_returns_copy():
    r = InMemory([Backend.create("a:1", 1, 0), Backend.create("b:2", 2, 1)])
    first = r.snapshot()
    first[0] = None
    second = r.snapshot()
    assert second[0].id == "a:1#0"


def test_snapshot_empty():
    assert InMemory(None).snapshot() == []


def test_load():
    r = InMemory([Backend.create("a:1", 3, 0), Backend.create("b:2", 4, 1)])
    lst, ver = r.load()
    assert ver == 1
    assert [b.id for b in lst] == ["a:1#0", "b:2#1"]


def test_version():
    r = InMemory(None)
    assert r.version() == 1
    r.swap([Backend.create("x:1", 1, 0)])
    assert r.version() == 2
    r.swap(None)
    assert r.version() == 3


def test_swap_returns_old():
    r = InMemory([Backend.create("old:1", 1, 0)])
    old = r.swap([Backend.create("new:1", 2, 0), Backend.create("new:2", 3, 1)])
    assert [b.id for b in old] == ["old:1#0"]
    assert [b.id for b in r.snapshot()] == ["new:1#0", "new:2#1"]
    assert r.version() == 2


def test_swap_empty_to_nonempty():
    r = InMemory(None)
    assert r.swap([Backend.create("n:1", 1, 0)]) == []
    lst, ver = r.load()
    assert [b.id for b in lst] == ["n:1#0"]
    assert ver == 2


def test_swap_concurrent():
    r = InMemory([Backend.create("init:1", 1, 0)])
    start = r.version()

    def work(w):
        for i in range(200):
            r.swap([Backend.create(f"w{w}", 1, i)])

    threads = [threading.Thread(target=work, args=(w,)) for w in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert r.version() == start + 16 * 200
    assert len(r.snapshot()) == 1