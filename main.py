#!/usr/bin/env python3
"""
SSO service -- process entry point and management commands.

Usage:
  python main.py serve [--config sso.env]
  python main.py add-app --id 1 --name billing --secret "$BILLING_SECRET"
  python main.py set-admin --user-id 42
  python main.py set-admin --user-id 42 --revoke

Configuration comes from the environment, an optional .env file, and the
file given by --config (or the CONFIG environment variable):
  ENV           local | dev | prod   (log format and level)
  STORAGE_PATH  SQLite file path or SQLAlchemy URL (required)
  TOKEN_TTL     token lifetime: "1h", "15m", "3600"
  HOST, PORT    HTTP listener
  BCRYPT_COST   password hash work factor

Any startup failure (bad config, storage that cannot be opened) prints one
line to stderr and exits with status 1 before the server accepts traffic.
"""

import argparse
import logging
import sys

import uvicorn

from api.main import create_app
from auth.models import App
from auth.store import SqlStore, StorageError, UserNotFoundError
from core.config import ConfigError, Settings, load_settings
from core.logging import setup_logging

logger = logging.getLogger("sso.main")


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    # Open storage once up front so a bad STORAGE_PATH fails here with a
    # clear message instead of inside the ASGI lifespan.
    store = SqlStore(settings.storage_url)
    try:
        app = create_app(settings, store=store)
        logger.info("starting SSO server", extra={"host": settings.host, "port": settings.port, "env": settings.env})
        # uvicorn installs SIGINT/SIGTERM handlers: in-flight requests finish,
        # then the lifespan shutdown runs.
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    finally:
        store.close()
    logger.info("SSO server stopped")
    return 0


def _add_app(settings: Settings, args: argparse.Namespace) -> int:
    store = SqlStore(settings.storage_url)
    try:
        store.save_app(App(id=args.id, name=args.name, secret=args.secret))
    finally:
        store.close()
    logger.info("app registered", extra={"app_id": args.id, "app_name": args.name})
    return 0


def _set_admin(settings: Settings, args: argparse.Namespace) -> int:
    store = SqlStore(settings.storage_url)
    try:
        store.set_admin(args.user_id, not args.revoke)
    except UserNotFoundError:
        print(f"  [!] user {args.user_id} not found", file=sys.stderr)
        return 1
    finally:
        store.close()
    logger.info("admin flag updated", extra={"user_id": args.user_id, "is_admin": not args.revoke})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sso",
        description="Single sign-on identity service.",
    )
    parser.add_argument("--config", help="Path to an env-format config file (default: $CONFIG).")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server.")
    serve.set_defaults(handler=_serve)

    add_app = sub.add_parser("add-app", help="Register a client app and its signing secret.")
    add_app.add_argument("--id", type=int, required=True, help="App id (non-zero, chosen by you).")
    add_app.add_argument("--name", required=True, help="Unique app name.")
    add_app.add_argument("--secret", required=True, help="HS256 signing secret for this app's tokens.")
    add_app.set_defaults(handler=_add_app)

    set_admin = sub.add_parser("set-admin", help="Grant or revoke administrator privilege.")
    set_admin.add_argument("--user-id", type=int, required=True)
    set_admin.add_argument("--revoke", action="store_true", help="Clear the flag instead of setting it.")
    set_admin.set_defaults(handler=_set_admin)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1

    setup_logging(settings.env)

    if args.command == "add-app" and args.id == 0:
        print("  [!] --id must be non-zero", file=sys.stderr)
        return 1

    try:
        return args.handler(settings, args)
    except StorageError as exc:
        logger.error("storage failure", extra={"command": args.command, "error": str(exc)})
        print(f"  [!] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
