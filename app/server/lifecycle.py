"""Process lifecycle: bring the store and the HTTP listener up in order, and
tear them down on a termination signal or an unhandled asynchronous error.

States move strictly forward:

    starting -> accepting-connections -> draining -> terminated

The listener is only bound after the backing store has answered. Draining
stops accepting new connections and waits for every in-flight request before
the process is allowed to exit. A termination signal lets the process exit on
its own once drained; an unhandled error forces exit status 1 after the drain.
"""

import asyncio
import contextlib
import enum
import logging
import signal
import sys
from typing import Any, Callable, Iterator, Sequence

import uvicorn
from fastapi import FastAPI

from ..config.config import AppConfig
from ..errors import ServerStartupError
from ..storage.base import BackingStore

logger = logging.getLogger(__name__)

_STARTUP_POLL_SECONDS = 0.01


class ServerState(str, enum.Enum):
	STARTING = "starting"
	ACCEPTING_CONNECTIONS = "accepting-connections"
	DRAINING = "draining"
	TERMINATED = "terminated"


class _ManagedServer(uvicorn.Server):
	"""uvicorn server that leaves process signals to the coordinator."""

	def install_signal_handlers(self) -> None:
		pass

	@contextlib.contextmanager
	def capture_signals(self) -> Iterator[None]:
		yield


class LifecycleCoordinator:
	def __init__(
		self,
		cfg: AppConfig,
		app: FastAPI,
		store: BackingStore,
		exit_process: Callable[[int], Any] = sys.exit,
		signals: Sequence[signal.Signals] = (signal.SIGTERM, signal.SIGINT),
	) -> None:
		self._cfg = cfg
		self._app = app
		self._store = store
		self._exit_process = exit_process
		self._signals = tuple(signals)
		self._state = ServerState.STARTING
		self._exit_code: int | None = None
		self._server: uvicorn.Server | None = None
		self._serve_task: asyncio.Task | None = None
		self._loop: asyncio.AbstractEventLoop | None = None
		self._installed_signals: list[signal.Signals] = []
		app.state.lifecycle = self

	@property
	def state(self) -> ServerState:
		return self._state

	@property
	def server(self) -> uvicorn.Server | None:
		return self._server

	@property
	def handled_signals(self) -> tuple[signal.Signals, ...]:
		return tuple(self._installed_signals)

	@property
	def draining(self) -> bool:
		return self._state in (ServerState.DRAINING, ServerState.TERMINATED)

	def _build_server(self) -> uvicorn.Server:
		config = uvicorn.Config(
			self._app,
			host=self._cfg.host,
			port=self._cfg.port,
			log_config=None,
			timeout_graceful_shutdown=self._cfg.shutdown_timeout,
		)
		return _ManagedServer(config)

	async def start(self) -> None:
		"""
		Connect the backing store, then bind and begin serving.

		Raises whatever the store raises on connection failure; the listener is
		never bound in that case.
		"""
		if self._state is not ServerState.STARTING:
			raise ServerStartupError(f"Cannot start from state {self._state.value}")
		self._loop = asyncio.get_running_loop()
		self._loop.set_exception_handler(self._handle_loop_exception)
		logger.info("Application started, running %s server", self._cfg.env)

		await self._store.connect()
		logger.info("Backing store connected")
		if self._state is not ServerState.STARTING:
			# a fatal error arrived while connecting; never bind
			return

		self._server = self._build_server()
		self._serve_task = asyncio.create_task(self._server.serve(), name="http-server")
		while not self._server.started and not self._serve_task.done():
			await asyncio.sleep(_STARTUP_POLL_SECONDS)
		if not self._server.started:
			raise ServerStartupError(f"HTTP server failed to start on {self._cfg.host}:{self._cfg.port}")

		self._install_signal_handlers()
		if self._state is ServerState.STARTING:
			self._state = ServerState.ACCEPTING_CONNECTIONS
		logger.info("Server started on http://%s:%d", self._cfg.host, self._cfg.port)

	def on_fatal_async_error(self, exc: BaseException) -> None:
		logger.critical("%s: %s", type(exc).__name__, exc)
		if self.draining:
			logger.warning("Shutdown already in progress, not restarting it")
			return
		logger.critical("Unhandled error detected! Closing down the application...")
		self._exit_code = 1
		self._begin_drain()

	def on_termination_signal(self, signum: int | None = None) -> None:
		name = signal.Signals(signum).name if signum is not None else "Termination signal"
		if self.draining:
			logger.info("%s received while already shutting down", name)
			return
		logger.info("%s received. Shutting down the server", name)
		self._begin_drain()

	def _begin_drain(self) -> None:
		self._state = ServerState.DRAINING
		if self._server is not None:
			self._server.should_exit = True

	async def close(self) -> None:
		"""Stop accepting connections and wait for in-flight requests. Safe to repeat."""
		if not self.draining:
			self._begin_drain()
		await self.wait_closed()

	async def wait_closed(self) -> BaseException | None:
		"""Wait until the listener has fully drained; returns the server's own failure, if any."""
		task = self._serve_task
		if task is None:
			return None
		await asyncio.wait({task})
		if task.cancelled():
			return None
		return task.exception()

	async def run(self) -> None:
		"""Serve until shutdown, then exit the way the shutdown trigger demands."""
		try:
			await self.start()
		except Exception as e:
			logger.critical("Startup failed, not accepting connections: %s: %s", type(e).__name__, e)
			await self._abort_startup()
			self._exit_process(1)
			return

		crashed = await self.wait_closed()
		if crashed is not None:
			logger.critical("HTTP server crashed: %s: %s", type(crashed).__name__, crashed)
			if self._exit_code is None:
				self._exit_code = 1
		self._finish()
		if self._exit_code is not None:
			self._exit_process(self._exit_code)

	async def _abort_startup(self) -> None:
		if self._server is not None:
			self._server.should_exit = True
		crashed = await self.wait_closed()
		if crashed is not None:
			logger.error("HTTP server failed during startup: %s", crashed)
		self._finish()

	def _finish(self) -> None:
		if self._state is ServerState.TERMINATED:
			return
		self._remove_signal_handlers()
		self._store.close()
		self._state = ServerState.TERMINATED
		logger.info("Process terminated")

	def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
		exc = context.get("exception")
		if exc is None:
			loop.default_exception_handler(context)
			return
		self.on_fatal_async_error(exc)

	def _install_signal_handlers(self) -> None:
		assert self._loop is not None
		for sig in self._signals:
			try:
				self._loop.add_signal_handler(sig, self.on_termination_signal, sig)
			except (NotImplementedError, RuntimeError, ValueError):
				logger.warning("Cannot install handler for %s in this environment", sig.name)
				continue
			self._installed_signals.append(sig)

	def _remove_signal_handlers(self) -> None:
		if self._loop is None:
			return
		for sig in self._installed_signals:
			self._loop.remove_signal_handler(sig)
		self._installed_signals.clear()
		self._loop.set_exception_handler(None)
