"""ClientManager: one reconnect supervisor task per configured server."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any

from ..application_context import ApplicationContext
from ..config.model import BotConfig, ServerConfig
from ..constants import MANAGER_LOOP_SLEEP_SECONDS, SHUTDOWN_GRACE_SECONDS
from ..errors.internal import IRCError
from ..irc.dispatcher import HandlerTable
from ..irc.supervisor import ReconnectSupervisor, create_session
from .handlers import BotHandlers
from .signal_handler import SignalHandler


class ClientManager:  # pylint: disable=too-many-instance-attributes
    """Manager for the per-server supervisors.

    Starts one supervisor task per autoconnect server, restarts them all when
    a new configuration arrives and tears everything down on shutdown.

    Attributes:
        config: The configuration currently in effect.
        supervisors: Active supervisors, one per autoconnect server.
        tasks: The asyncio tasks running ``supervisor.run()``.
        running: Whether supervisors are currently launched.
        restart_requested: Set by the config watcher; applied by the main loop.
        new_config: Configuration to apply on the next restart.
    """

    tasks: list[asyncio.Task[Any]]

    def __init__(
        self,
        config: BotConfig,
        config_file: str | None = None,
        context: ApplicationContext | None = None,
    ) -> None:
        self.config = config
        self.config_file = config_file
        self.context = context
        self.supervisors: list[ReconnectSupervisor] = []
        self.tasks = []
        self.running = False
        self.restart_requested = False
        self.new_config: BotConfig | None = None
        self.signals = SignalHandler()
        self._stop_event = asyncio.Event()
        self._manager_lock = asyncio.Lock()

    @property
    def shutdown_initiated(self) -> bool:
        return self.signals.shutdown_initiated

    def stop(self) -> None:
        self.signals.stop()

    def setup_signal_handlers(self) -> None:  # pragma: no cover
        self.signals.setup_signal_handlers()

    def request_restart(self, config: BotConfig) -> None:
        """Queue ``config`` for the main loop; safe to call from the watcher thread."""
        self.new_config = config
        self.restart_requested = True

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def _handlers_for(self, server: ServerConfig) -> HandlerTable:
        ctx = self.context
        return BotHandlers(
            server,
            search=ctx.search if ctx else None,
            crawler=ctx.crawler if ctx else None,
            seen=ctx.seen if ctx else None,
        ).table()

    def _create_supervisor(self, server: ServerConfig) -> ReconnectSupervisor:
        handlers = self._handlers_for(server)
        return ReconnectSupervisor(
            server, partial(create_session, handlers=handlers), stop_event=self._stop_event
        )

    async def start_all(self) -> bool:
        """Launch one supervisor task per autoconnect server.

        Returns:
            True if at least one supervisor was started.
        """
        servers = self.config.autoconnect_servers
        logging.info(f"▶️ Starting clients (count={len(servers)})")
        self._stop_event = asyncio.Event()
        for server in servers:
            supervisor = self._create_supervisor(server)
            self.supervisors.append(supervisor)
            self.tasks.append(asyncio.create_task(supervisor.run(), name=f"supervisor:{server.name}"))
        if not self.supervisors:
            logging.error("⚠️ No autoconnect servers configured - nothing to start")
            return False
        self.running = True
        return True

    async def stop_all(self) -> None:
        """Quit every live session, then cancel and await all supervisor tasks."""
        if not self.running:
            return
        logging.warning("🛑 Stopping all clients")
        self._stop_event.set()
        await self._quit_sessions()
        for task in self.tasks:
            if not task.done():
                task.cancel()
        await self._wait_for_task_completion()
        self.supervisors.clear()
        self.running = False
        logging.info("🛑 All clients stopped")

    async def _quit_sessions(self) -> None:
        for supervisor in self.supervisors:
            session = supervisor.session
            if session is None or not session.connected:
                continue
            try:
                await asyncio.wait_for(session.quit(), timeout=SHUTDOWN_GRACE_SECONDS)
            except (IRCError, TimeoutError) as e:
                logging.debug(f"QUIT not delivered target={supervisor.name}: {e}")

    async def _wait_for_task_completion(self) -> None:
        if not self.tasks:
            return
        try:
            done, pending = await asyncio.wait(self.tasks, timeout=SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                logging.warning(f"⚠️ Supervisor did not stop in time task={task.get_name()}")
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logging.warning(
                        f"💥 Task {task.get_name()} finished with exception: {task.exception()}"
                    )
        finally:
            self.tasks.clear()

    async def restart_with_new_config(self) -> bool:
        async with self._manager_lock:
            if not self.new_config:
                return False
            logging.info("🔄 Restarting with new configuration")
            await self.stop_all()
            old_count = len(self.config.servers)
            self.config = self.new_config
            logging.info(
                f"🛠️ Configuration updated old={old_count} new={len(self.config.servers)}"
            )
            self.restart_requested = False
            self.new_config = None
            return await self.start_all()


async def _run_main_loop(manager: ClientManager) -> None:
    """Poll for shutdown and reload requests while supervisors run."""
    while manager.running:
        await asyncio.sleep(MANAGER_LOOP_SLEEP_SECONDS)
        if manager.shutdown_initiated:
            logging.warning("🔻 Shutdown initiated - stopping clients")
            break
        if manager.restart_requested:
            ok = await manager.restart_with_new_config()
            if not ok:
                logging.error("⚠️ Restart left no clients running")
                break
        if manager.tasks and all(task.done() for task in manager.tasks):
            logging.warning("⚠️ All supervisor tasks completed unexpectedly")
            break


async def run_clients(config: BotConfig, config_file: str | None = None) -> None:
    """Run every autoconnect server until a signal or a fatal error.

    Creates the application context, starts the supervisors and, when
    ``config_file`` is given, watches it for changes.
    """
    context = await ApplicationContext.create()
    await context.start()
    manager = ClientManager(config, config_file, context=context)
    manager.setup_signal_handlers()
    watcher = None
    try:
        async with manager._manager_lock:
            success = await manager.start_all()
        if not success:
            return
        if config_file:
            from ..config.watcher import create_config_watcher  # local import

            watcher = await create_config_watcher(
                config_file, manager.request_restart, manager.config
            )
        logging.info("🏃 Clients running - press Ctrl+C to stop")
        await _run_main_loop(manager)
    except asyncio.CancelledError:
        logging.debug("Operation cancelled")
        raise
    except (RuntimeError, OSError, ValueError) as e:
        logging.error(f"💥 Fatal error: {str(e)}")
    finally:
        if watcher is not None:
            watcher.stop()
        await manager.stop_all()
        try:
            await asyncio.shield(context.shutdown())
        except (RuntimeError, OSError, ValueError):
            logging.warning("💥 Error during application context shutdown")
        logging.info("👋 Goodbye")
