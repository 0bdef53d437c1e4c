import logging
from typing import Optional
from datetime import datetime

from .logs_storage import DeployLogStorage


class DeployLogHandler(logging.Handler):
    """Logging handler that forwards records to the deploy log file."""

    def __init__(self, storage: DeployLogStorage):
        super().__init__()
        self.storage = storage

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR and not message.startswith("ERROR:"):
                message = f"ERROR: {message}"
            elif record.levelno >= logging.WARNING and not message.startswith("Warning:"):
                message = f"Warning: {message}"
            self.storage.append(message, datetime.fromtimestamp(record.created))
        except Exception:
            self.handleError(record)


class LoggingCollector:
    """Manages lifecycle of the run-scoped deploy log handler."""

    def __init__(self, storage: DeployLogStorage, logger_name: str = "staticdeploy"):
        self.storage = storage
        self.logger_name = logger_name
        self._handler: Optional[DeployLogHandler] = None

    def start(self, level: int = logging.INFO) -> None:
        self.stop()  # Ensure any existing handler is removed first
        handler = DeployLogHandler(self.storage)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        target = logging.getLogger(self.logger_name)
        if target.getEffectiveLevel() > level:
            target.setLevel(level)
        target.addHandler(handler)
        self._handler = handler

    def stop(self) -> None:
        if self._handler is not None:
            logging.getLogger(self.logger_name).removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
