from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import Settings, load_settings
from .errors import TrackerError
from .logging_utils import configure_logging
from .seed import seed
from .server.api import create_app
from .server.auth import create_access_token
from .store import build_store


def _settings(args: argparse.Namespace) -> Settings:
    config_path: Optional[Path] = Path(args.config).expanduser() if args.config else None
    settings = load_settings(config_path)
    overrides = {}
    if getattr(args, "state_dir", None):
        overrides["state_dir"] = Path(args.state_dir).expanduser().resolve()
        overrides["store_backend"] = "file"
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)
    return settings


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    settings = _settings(args)
    host = args.host or settings.host
    port = args.port or settings.port
    store = build_store(settings)
    if args.seed:
        seed(store)
    app = create_app(settings=settings, store=store)
    logger.info("Serving taskboard on {}:{} (store={})", host, port, settings.store_backend)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    return 0


def _seed(args: argparse.Namespace) -> int:
    settings = _settings(args)
    if settings.store_backend != "file":
        sys.stderr.write("Seeding an in-memory store has no lasting effect; pass --state-dir\n")
        return 1
    try:
        ids = seed(build_store(settings))
    except TrackerError as exc:
        sys.stderr.write(f"Seeding failed: {exc.message}\n")
        return 1
    payload = {
        **ids,
        "admin_token": create_access_token(ids["admin_id"], settings),
        "user_token": create_access_token(ids["user_id"], settings),
    }
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Taskboard project and task tracker")
    parser.add_argument("--config", default=None, help="Path to taskboard.yaml (default: ./taskboard.yaml)")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the API and WebSocket server")
    server.add_argument("--host", default=None)
    server.add_argument("--port", default=None, type=int)
    server.add_argument("--state-dir", default=None, help="Persist records under this directory")
    server.add_argument("--seed", action="store_true", help="Load sample data before serving")
    server.set_defaults(func=_server)

    seed_cmd = subparsers.add_parser("seed", help="Write sample users, project, and tasks")
    seed_cmd.add_argument("--state-dir", default=None, help="Persist records under this directory")
    seed_cmd.set_defaults(func=_seed)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
