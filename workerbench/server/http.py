import argparse
import functools
import os
import signal
import sys
from typing import Optional, Sequence

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import ServerConfig, Variant
from ..errors import BindError, ConfigError
from ..logging import log_level_from_env, setup_logging
from ..response import generate_response
from ..roles import Role
from .supervisor import Supervisor, signal_request_stop
from .worker import WorkerServer, bind_socket

HELLO_WORLD = "Hello World\n"

log = structlog.get_logger("workerbench.server.http")


def create_app(variant: Variant, *, directory: Optional[str] = None) -> FastAPI:
    """
    Build an app that answers every method on every path with status 200:
    a fixed greeting for the plain variant, a fresh response payload for the
    JSON variant.
    """
    app = FastAPI(
        title="workerbench",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    def hello_world(request: Request) -> Response:  # pylint: disable=unused-argument
        return Response(content=HELLO_WORLD, headers={"Content-Type": "text/plain"})

    def payload(request: Request) -> Response:  # pylint: disable=unused-argument
        return JSONResponse(generate_response(directory).to_dict())

    # A plain route with no method list matches every method, including
    # TRACE and extension methods such as PURGE.
    app.add_route(
        "/{path:path}",
        hello_world if variant == Variant.PLAIN else payload,
        include_in_schema=False,
    )

    return app


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="workerbench HTTP server")
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--variant",
        dest="variant",
        type=Variant,
        default=None,
        choices=list(Variant),
        help="Respond with a static greeting (plain) or a random payload (json)",
    )
    parser.add_argument(
        "--host",
        dest="host",
        type=str,
        default=None,
        help="Host to bind to (defaults to $HOSTNAME or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        dest="port",
        type=int,
        default=None,
        help="Port to bind to (defaults to $PORT or 3000)",
    )
    parser.add_argument(
        "--workers",
        dest="workers",
        type=int,
        default=None,
        help="Number of worker processes in cluster mode. Defaults to $WORKERS or the number of CPUs.",
    )
    parser.add_argument(
        "--reuse-port",
        dest="reuse_port",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Set SO_REUSEPORT so independent processes can share the address",
    )
    parser.add_argument(
        "--cluster",
        dest="cluster",
        action="store_true",
        help="Run as a primary that forks and supervises the workers",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    if args.version:
        print(f"workerbench {__version__}")
        sys.exit(0)

    setup_logging(log_level=log_level_from_env())

    try:
        config = ServerConfig.from_env().evolve(
            host=args.host,
            port=args.port,
            workers=args.workers,
            reuse_port=args.reuse_port,
            variant=args.variant,
        )
    except ConfigError as e:
        log.error("invalid configuration", error=str(e))
        sys.exit(1)

    app_factory = functools.partial(create_app, config.variant)

    try:
        if args.cluster:
            supervisor = Supervisor(config, app_factory, role=Role.PRIMARY)
            handler = signal_request_stop(supervisor)
            signal.signal(signal.SIGTERM, handler)
            signal.signal(signal.SIGINT, handler)
            supervisor.run()
        else:
            sock = bind_socket(config.host, config.port, reuse_port=config.reuse_port)
            server = WorkerServer(app_factory(), sock, role=Role.WORKER)
            server.serve_forever()
    except BindError as e:
        log.error("failed to bind listener", error=str(e), pid=os.getpid())
        sys.exit(1)


if __name__ == "__main__":
    main()
