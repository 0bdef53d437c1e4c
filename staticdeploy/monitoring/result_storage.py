import json
import logging
from pathlib import Path

from ..core.models import LastResult


class ResultStorage:
    """JSON file holding the last terminal run result."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def read(self) -> LastResult:
        if not self.path.exists():
            return LastResult()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return LastResult.from_dict(json.load(f))
        except (ValueError, KeyError) as e:
            self.logger.warning(f"Ignoring unreadable last result file {self.path}: {e}")
            return LastResult()

    def write(self, result: LastResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix('.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2)
        tmp_path.replace(self.path)
