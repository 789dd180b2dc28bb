"""Run the PromptFolio server with explicit args (avoids shell interpolation)."""
from __future__ import annotations

import argparse

import uvicorn

from promptfolio.app import create_app
from promptfolio.observability.logging import configure_logging
from promptfolio.settings import PromptfolioSettings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="promptfolio-server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default=None)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="JSON log lines (default: LOG_FORMAT env var, json)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs)
    app = create_app(PromptfolioSettings.from_env())
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
