import multiprocessing
import signal
import socket
import threading
import types
from multiprocessing.connection import wait
from typing import Callable, List, Optional

import structlog
from fastapi import FastAPI

from ..config import ServerConfig
from ..errors import NotStartedError
from ..logging import bind_process_context
from ..roles import Role, assert_role
from .worker import WorkerServer, bind_socket

# Workers must inherit the primary's listening socket.
_fork = multiprocessing.get_context("fork")

AppFactory = Callable[[], FastAPI]

log = structlog.get_logger("workerbench.server.supervisor")


class _ChildWorker(_fork.Process):  # type: ignore
    def __init__(self, app_factory: AppFactory, sock: socket.socket) -> None:
        self._app_factory = app_factory
        self._sock = sock

        # Workers go down with the primary.
        super().__init__(daemon=True)

    def run(self) -> None:
        # Drop the primary's handlers; uvicorn installs its own once serving.
        signal.signal(signal.SIGINT, signal.SIG_DFL)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

        server = WorkerServer(self._app_factory(), self._sock, role=Role.WORKER)
        server.serve_forever()


class Supervisor:
    """
    Primary process of the fork-based cluster. It binds the listener once,
    forks `config.workers` children that serve on the inherited socket, and
    forks a replacement as soon as any of them exits. It never serves
    requests itself.

    There is no backoff: a worker that crashes on startup is replaced
    immediately, forever.
    """

    def __init__(
        self,
        config: ServerConfig,
        app_factory: AppFactory,
        *,
        role: Role,
        sock: Optional[socket.socket] = None,
    ) -> None:
        assert_role(role, Role.PRIMARY)

        self.role = role
        self._config = config
        self._app_factory = app_factory
        self._sock = sock
        self._workers: List[_ChildWorker] = []
        self._stop_requested = threading.Event()

    @property
    def pids(self) -> List[int]:
        return [w.pid for w in self._workers if w.is_alive()]

    @property
    def port(self) -> int:
        if self._sock is None:
            raise NotStartedError(
                "Invalid operation: supervisor has not bound a socket yet"
            )
        return self._sock.getsockname()[1]

    def start(self) -> None:
        bind_process_context(self.role)

        if self._sock is None:
            self._sock = bind_socket(
                self._config.host,
                self._config.port,
                reuse_port=self._config.reuse_port,
            )

        log.info("primary running", port=self.port, workers=self._config.workers)
        for _ in range(self._config.workers):
            self._fork_worker()

    def reap(self, timeout: Optional[float] = None) -> int:
        """
        Wait up to `timeout` seconds for workers to exit and fork one
        replacement per exited worker. Returns the number of replacements.
        """
        sentinels = {w.sentinel: w for w in self._workers}
        if not sentinels:
            return 0

        replaced = 0
        for sentinel in wait(list(sentinels), timeout):
            worker = sentinels[sentinel]
            worker.join()
            self._workers.remove(worker)
            log.warn("worker died", worker_pid=worker.pid, exitcode=worker.exitcode)
            worker.close()

            if self._stop_requested.is_set():
                continue

            self._fork_worker()
            replaced += 1

        return replaced

    def run(self) -> None:
        self.start()
        try:
            while not self._stop_requested.is_set():
                self.reap(timeout=0.5)
        finally:
            self.stop()

    def request_stop(self) -> None:
        """Ask `run` to return. Safe to call from a signal handler."""
        self._stop_requested.set()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Terminate every worker. In-flight requests are not drained.
        """
        self._stop_requested.set()
        log.info("stopping workers", count=len(self._workers))

        for worker in self._workers:
            if worker.is_alive():
                worker.terminate()

        for worker in self._workers:
            worker.join(timeout)
            if worker.is_alive():
                log.warn(
                    "worker failed to exit, sending SIGKILL", worker_pid=worker.pid
                )
                worker.kill()
                worker.join()
            worker.close()
        self._workers.clear()

        if self._sock is not None:
            self._sock.close()

    def _fork_worker(self) -> None:
        worker = _ChildWorker(self._app_factory, self._sock)  # type: ignore[arg-type]
        worker.start()
        self._workers.append(worker)
        log.info("worker forked", worker_pid=worker.pid)


def signal_request_stop(
    supervisor: Supervisor,
) -> Callable[[int, Optional[types.FrameType]], None]:
    def _signal_request_stop(
        signum: int, frame: Optional[types.FrameType]  # pylint: disable=unused-argument
    ) -> None:
        log.info("got signal, stopping", signal=signal.Signals(signum).name)
        supervisor.request_stop()

    return _signal_request_stop
