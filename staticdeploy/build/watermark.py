import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


WATERMARK_FORMAT = "%Y-%m-%dT%H:%M:%S"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class WatermarkStore:
    """Persists the UTC end time of the last successful build."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def read(self) -> Optional[datetime]:
        """Return the stored watermark, or None on a first build"""
        if not self.path.exists():
            return None
        raw = self.path.read_text().strip()
        try:
            return datetime.strptime(raw, WATERMARK_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            self.logger.warning(f"Ignoring malformed build watermark {raw!r}; treating as first build")
            return None

    def read_raw(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text().strip() or None

    def write(self, moment: Optional[datetime] = None) -> str:
        """Store the given moment (default: now), second precision, UTC"""
        moment = moment or datetime.now(timezone.utc)
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        value = moment.strftime(WATERMARK_FORMAT)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix('.tmp')
        tmp_path.write_text(value)
        tmp_path.replace(self.path)
        self.logger.debug(f"Build watermark set to {value}")
        return value

    def clear(self) -> bool:
        """Forget the watermark so the next run is a full build"""
        if self.path.exists():
            self.path.unlink()
            return True
        return False


def format_watermark(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(WATERMARK_FORMAT)
