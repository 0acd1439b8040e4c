"""Listener supervision for the proxy and health endpoints.

Both endpoints run as independent uvicorn servers inside one event loop. The
first listener to stop, for whatever reason, ends the whole process: nothing
is restarted and in-flight requests are not drained.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import socket
from typing import Literal, Optional, Sequence

import uvicorn
from fastapi import FastAPI

from segment_proxy.models.schemas import ListenerOutcome


class SupervisorState(str, enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class Listener:
    """One uvicorn server bound to its own address.

    ``run`` never raises: bind failures, server errors and a plain return are
    all reported as a single ListenerOutcome.
    """

    def __init__(self, name: Literal["proxy", "health"], app: FastAPI, host: str, port: int,
                 log: logging.Logger):
        self.name = name
        self.host = host
        self.port = port
        self._log = log
        # no graceful drain: open connections are cancelled as soon as the server stops
        config = uvicorn.Config(app, host=host, port=port, lifespan="on", log_config=None, access_log=False,
                                timeout_graceful_shutdown=0)
        self.server = uvicorn.Server(config)
        self.bound_port: Optional[int] = None

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        self.bound_port = sock.getsockname()[1]
        return sock

    async def run(self) -> ListenerOutcome:
        error: Optional[BaseException] = None
        sock: Optional[socket.socket] = None
        try:
            sock = self._bind()
            self._log.info("Serving %s at port %s", self.name, self.bound_port)
            await self.server.serve(sockets=[sock])
        except SystemExit as e:
            # uvicorn exits the interpreter on startup failures
            error = RuntimeError(f"{self.name} server exited during startup (status {e.code})")
        except Exception as e:
            error = e
        finally:
            # uvicorn skips its own shutdown when told to exit mid-startup
            for server in getattr(self.server, "servers", ()):
                server.close()
            if sock is not None:
                sock.close()

        if error is not None:
            self._log.error("%s listener failed: %s", self.name, error)
        else:
            self._log.warning("%s listener stopped", self.name)
        return ListenerOutcome(source=self.name, error=error)

    def stop(self) -> None:
        """Ask the server to exit on its next tick."""
        self.server.should_exit = True


class Supervisor:
    """Run listeners concurrently until the first one stops."""

    def __init__(self, listeners: Sequence[Listener], log: logging.Logger, stop_timeout_s: float = 5.0):
        self.listeners = tuple(listeners)
        self.state = SupervisorState.NOT_STARTED
        self._log = log
        self._stop_timeout_s = stop_timeout_s

    async def run(self) -> ListenerOutcome:
        """Start every listener and return the outcome of the first to stop.

        When several stop together the earliest-declared listener wins. Later
        outcomes are discarded.
        """
        if self.state is not SupervisorState.NOT_STARTED:
            raise RuntimeError(f"Supervisor already {self.state.value}")

        tasks = [asyncio.create_task(l.run(), name=f"{l.name}-listener") for l in self.listeners]
        self.state = SupervisorState.RUNNING
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        self.state = SupervisorState.SHUTTING_DOWN
        outcome = next(t for t in tasks if t in done).result()
        self._log.error("Shutting down after %s listener stopped", outcome.source)

        for task, listener in zip(tasks, self.listeners):
            if task in pending:
                listener.stop()
        if pending:
            _, stuck = await asyncio.wait(pending, timeout=self._stop_timeout_s)
            for task in stuck:
                task.cancel()
            await asyncio.gather(*stuck, return_exceptions=True)

        self.state = SupervisorState.TERMINATED
        return outcome
