"""
Configuration file watcher for runtime config changes
"""

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..logs.logger import logger
from .loader import ConfigLoader
from .model import BotConfig


def _file_signature(path: str) -> tuple[float, int] | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_mtime, st.st_size


class ConfigFileHandler(FileSystemEventHandler):
    """Forwards events touching the config file, once per distinct file version.

    Editors and atomic savers produce bursts of created/modified/moved events
    for one save; only the first event seeing a new (mtime, size) pair counts.
    """

    def __init__(self, config_file: str, watcher_instance: "ConfigWatcher"):
        super().__init__()
        self.config_file = os.path.abspath(config_file)
        self.watcher = watcher_instance
        self.last_signature = _file_signature(self.config_file)

    def _touches_config(self, event: FileSystemEvent) -> bool:
        paths = (getattr(event, "src_path", ""), getattr(event, "dest_path", ""))
        return any(p and os.path.abspath(p) == self.config_file for p in paths)

    def on_any_event(self, event):
        if getattr(event, "is_directory", False) or not self._touches_config(event):
            return
        signature = _file_signature(self.config_file)
        if signature is None or signature == self.last_signature:
            return
        self.last_signature = signature
        self.watcher.on_config_changed()


class ConfigWatcher:
    """Watches the config file and hands each valid, changed version to a callback.

    Invalid files are logged and ignored, so the running configuration stays
    in effect until a valid one is written. Saving the same content again
    does not trigger a restart.
    """

    observer: Any | None
    running: bool

    def __init__(
        self,
        config_file: str,
        restart_callback: Callable[[BotConfig], Any],
        current: BotConfig | None = None,
    ):
        self.config_file = config_file
        self.restart_callback = restart_callback
        self.current = current
        self.observer = None
        self.running = False

    def start(self) -> None:
        if self.running:
            return
        config_dir = os.path.dirname(os.path.abspath(self.config_file))
        if not os.path.isdir(config_dir):
            logger.log_event("config_watch", "dir_missing", level=logging.WARNING, path=config_dir)
            return
        # the directory is watched so atomic rename-over saves are seen
        observer = Observer()
        try:
            observer.schedule(ConfigFileHandler(self.config_file, self), config_dir, recursive=False)
            observer.start()
        except OSError as e:
            logger.log_event("config_watch", "start_failed", level=logging.ERROR, error=str(e))
            return
        self.observer = observer
        self.running = True
        logger.log_event("config_watch", "start", path=self.config_file)

    def stop(self) -> None:
        observer, self.observer = self.observer, None
        if not self.running or observer is None:
            return
        try:
            observer.stop()
            observer.join()
        finally:
            self.running = False
            logger.log_event("config_watch", "stopped")

    def on_config_changed(self) -> None:
        """Reload and validate; forward the configuration if it differs from the current one."""
        config = ConfigLoader(self.config_file).load()
        if config is None:
            logger.log_event("config_watch", "invalid", level=logging.WARNING, path=self.config_file)
            return
        if config == self.current:
            logger.log_event("config_watch", "unchanged", level=logging.DEBUG)
            return
        logger.log_event("config_watch", "validation_passed", server_count=len(config.servers))
        self.current = config
        self.restart_callback(config)


async def create_config_watcher(
    config_file: str,
    restart_callback: Callable[[BotConfig], Any],
    current: BotConfig | None = None,
) -> ConfigWatcher:
    """Create a watcher and start its observer thread off the event loop."""
    watcher = ConfigWatcher(config_file, restart_callback, current)
    await asyncio.get_running_loop().run_in_executor(None, watcher.start)
    return watcher
