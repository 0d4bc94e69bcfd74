"""Application entry point."""

from __future__ import annotations

import argparse

from flowgate.config import Config, load_config
from flowgate.logger import setup


class App:
    """Wires configuration and logging together and runs the service."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.log = setup(config.env, config.log_level)

    def run(self) -> None:
        self.log.info("App starting...")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="flowgate")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load if present")
    args = parser.parse_args(argv)
    App(load_config(args.env_file)).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())