import os
import socket
import threading
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from ..errors import BindError
from ..logging import bind_process_context
from ..roles import Role, assert_role

LISTEN_BACKLOG = 2048

log = structlog.get_logger("workerbench.server.worker")


def bind_socket(host: str, port: int, *, reuse_port: bool = False) -> socket.socket:
    """
    Open a TCP listener on host:port. With `reuse_port` set, other processes
    may bind the same address and the kernel spreads connections across them.
    """
    if reuse_port and not hasattr(socket, "SO_REUSEPORT"):
        raise BindError("SO_REUSEPORT is not supported on this platform")

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if reuse_port:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError as e:
        sock.close()
        raise BindError(f"Failed to bind {host}:{port}: {e.strerror or e}") from e

    sock.set_inheritable(True)
    return sock


class WorkerServer(uvicorn.Server):
    """
    Serves one app on a socket that was bound beforehand, either by this
    process or by the primary before it forked.
    """

    def __init__(self, app: FastAPI, sock: socket.socket, *, role: Role) -> None:
        assert_role(role, Role.WORKER)
        super().__init__(
            config=uvicorn.Config(
                app,
                log_config=None,
                # Each worker is a single process; scaling out is done by
                # running more workers.
                workers=1,
            )
        )
        self.role = role
        self._sock = sock
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    def serve_forever(self) -> None:
        bind_process_context(self.role)
        log.info("worker started", port=self.port)
        self.run(sockets=[self._sock])

    def start(self) -> None:
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        log.info("stopping server", pid=os.getpid())
        self.should_exit = True  # pylint: disable=attribute-defined-outside-init

        if self._thread is None:
            return

        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            return

        log.warn("failed to exit after 5 seconds, setting force_exit")
        self.force_exit = True  # pylint: disable=attribute-defined-outside-init
        self._thread.join(timeout=5)
        if self._thread.is_alive():
            log.error("server thread still running after force_exit")
