from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import threading


class DeployLogStorage:
    """
    Plain-text deploy log: one "[YYYY-MM-DD HH:MM:SS] message" line per entry.

    The file is rotated to <name>.1 once it grows past max_bytes.
    """

    def __init__(self, log_path: Path, max_bytes: int = 5 * 1024 * 1024):
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()

    def append(self, message: str, timestamp: Optional[datetime] = None) -> None:
        """Append a single entry; multi-line messages are kept on one line each"""
        timestamp = timestamp or datetime.now()
        stamp = timestamp.strftime('%Y-%m-%d %H:%M:%S')
        lines = message.splitlines() or [""]
        text = "".join(f"[{stamp}] {line}\n" for line in lines)

        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(text)

    def tail(self, lines: int = 50) -> str:
        """Return the last N lines of the log"""
        if not self.log_path.exists():
            return "No deploy log found."
        with open(self.log_path, "r", encoding="utf-8", errors="replace") as f:
            recent = deque(f, maxlen=max(lines, 0))
        return "".join(recent)

    def _rotate_if_needed(self) -> None:
        if not self.max_bytes or not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self.max_bytes:
            return
        backup = self.log_path.with_name(self.log_path.name + ".1")
        self.log_path.replace(backup)
