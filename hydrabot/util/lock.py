"""
Single-instance lock on a directory.

The lock is a directory named __dir.lock inside the locked directory.
Creating a directory is atomic, so two processes can't both succeed. The
owner touches the lock every few seconds; a lock that hasn't been touched
for longer than the stale timeout belongs to a process that died and may
be taken over.
"""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

from hydrabot.config.logging import get_logger
from hydrabot.errors import LockHeld

logger = get_logger(__name__)

LOCK_NAME = "__dir.lock"


class DirectoryLock:
    """
    Exclusive lock on a directory, shared between processes.

    Args:
        directory: The directory to lock (created if missing)
        stale: Seconds after which an untouched lock is considered abandoned
        update: Seconds between refreshes while the lock is held

    Example::

        async with DirectoryLock(cache_path):
            ...  # only one process gets here per cache_path
    """

    def __init__(self, directory: str | Path, stale: float = 10.0, update: float = 2.0) -> None:
        self.directory = Path(directory).resolve()
        self.lock_path = self.directory / LOCK_NAME
        self.stale = stale
        self.update = update
        self._refresher: asyncio.Task | None = None
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _is_stale(self) -> bool:
        try:
            mtime = self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return True
        return time.time() - mtime > self.stale

    def acquire(self) -> None:
        """
        Take the lock.

        Raises:
            LockHeld: If another process holds a fresh lock
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            self.lock_path.mkdir()
        except FileExistsError:
            if not self._is_stale():
                raise LockHeld(self.directory) from None
            logger.warning(f"Taking over stale lock: {self.lock_path}")
            try:
                self.lock_path.rmdir()
                self.lock_path.mkdir()
            except (FileNotFoundError, FileExistsError):
                # Someone else took it over first
                raise LockHeld(self.directory) from None
        self._held = True
        logger.debug(f"Acquired lock: {self.lock_path}")

    def start_refreshing(self) -> None:
        """Start touching the lock periodically. Must be called from the event loop."""
        if self._refresher is None and self._held:
            self._refresher = asyncio.create_task(self._refresh_forever(), name="lock-refresh")

    async def _refresh_forever(self) -> None:
        while True:
            await asyncio.sleep(self.update)
            try:
                os.utime(self.lock_path)
            except FileNotFoundError:
                logger.error(f"Lock was removed by someone else: {self.lock_path}")
                return
            except OSError as e:
                logger.warning(f"Could not refresh lock {self.lock_path}: {e}")

    def release(self) -> None:
        """Stop refreshing and remove the lock. Does nothing if the lock isn't held."""
        if self._refresher is not None:
            self._refresher.cancel()
            self._refresher = None
        if not self._held:
            return
        self._held = False
        try:
            self.lock_path.rmdir()
        except FileNotFoundError:
            pass
        logger.debug(f"Released lock: {self.lock_path}")

    async def __aenter__(self) -> DirectoryLock:
        self.acquire()
        self.start_refreshing()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
