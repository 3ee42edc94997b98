"""Serve the application with granian's embedded RSGI server.

    python -m todomux --port 8080 --database todo.db
"""

import argparse
import asyncio
import contextlib
import logging
from dataclasses import replace

from granian.server.embed import Server

from todomux.app import build_router
from todomux.config import Settings, parse_port
from todomux.router import Router
from todomux.store import connect

logger = logging.getLogger("todomux")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="todomux", description=__doc__)
    parser.add_argument("--address", help="interface to bind")
    parser.add_argument("--port", type=_port, help="port to listen on")
    parser.add_argument("--database", help="path of the SQLite database file")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    settings = replace(settings, **overrides)

    logging.basicConfig(level=settings.log_level)
    db = connect(settings.database)
    try:
        router = build_router(db, settings)
        router.finalize()
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve(router, settings))
    finally:
        db.close()


def _port(value: str) -> int:
    try:
        return parse_port(value, "--port")
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


async def serve(router: Router, settings: Settings) -> None:
    logger.info(
        "serving on http://%s:%d (database %s)",
        settings.address,
        settings.port,
        settings.database,
    )
    server = Server(router, address=settings.address, port=settings.port)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await server.shutdown()


if __name__ == "__main__":
    main()
