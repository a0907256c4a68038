from __future__ import annotations

import argparse
import asyncio

from marketsync.app import run_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Marketplace live sync client")
    parser.add_argument(
        "--url",
        default=None,
        help="WebSocket URL of the market server (default: from MARKET_WS_URL / MARKET_ENV)",
    )
    parser.add_argument(
        "--username",
        default=None,
        help="Log in as this user once connected (default: MARKET_USERNAME)",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Password for --username (default: MARKET_PASSWORD)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level, e.g. DEBUG to see every frame (default: LOG_LEVEL or INFO)",
    )
    args = parser.parse_args()

    try:
        asyncio.run(
            run_app(
                url=args.url,
                username=args.username,
                password=args.password,
                log_level=args.log_level,
            )
        )
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
