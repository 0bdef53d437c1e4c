"""
Run lock for mutually exclusive deploy runs.
"""
import os
import time
import errno
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from ..core.errors import LockContention


class RunLock:
    """
    Exclusive-create marker file guarding a deploy run.

    Acquisition is a single atomic O_CREAT | O_EXCL open, so two runs can
    never both believe they hold the lock. The file holds the owner PID.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        self._held = False
        self.logger = logging.getLogger(__name__)

    async def __aenter__(self):
        """Acquire lock (async context manager)"""
        self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release lock (async context manager)"""
        self.release()
        return False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """
        Acquire the run lock without waiting.

        Raises:
            LockContention: If another run holds the lock
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockContention(f"Run lock is held: {self.lock_path}")

        with os.fdopen(fd, 'w') as f:
            f.write(f"{os.getpid()}\n")

        self._held = True
        self.logger.debug(f"Run lock acquired: {self.lock_path}")

    def release(self) -> None:
        """Release the run lock if this instance holds it"""
        if not self._held:
            return
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            self.logger.warning(f"Run lock already removed: {self.lock_path}")
        self._held = False
        self.logger.debug("Run lock released")

    def is_locked(self) -> bool:
        """Check if any run currently holds the lock"""
        return self.lock_path.exists()

    def info(self) -> Optional[Dict[str, Any]]:
        """
        Describe the current lock holder.

        Returns:
            None when unlocked, else pid, age in seconds and whether the pid is alive
        """
        try:
            stat = self.lock_path.stat()
            content = self.lock_path.read_text().strip()
        except FileNotFoundError:
            return None

        pid = int(content) if content.isdigit() else None
        return {
            'pid': pid,
            'age_seconds': max(0.0, time.time() - stat.st_mtime),
            'alive': _pid_alive(pid) if pid else False,
        }

    def break_lock(self, force: bool = False) -> bool:
        """
        Remove a stale lock file.

        Returns:
            True if a lock file was removed

        Raises:
            LockContention: If the holder is still alive and force is not set
        """
        info = self.info()
        if info is None:
            return False
        if info['alive'] and not force:
            raise LockContention(f"Lock holder pid {info['pid']} is still running")
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            return False
        self.logger.warning(f"Removed run lock held by pid {info['pid']}")
        return True


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError as e:
        return e.errno == errno.EPERM
    return True
