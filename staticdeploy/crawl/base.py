"""
Crawler capability used by the mirror pipeline.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.models import CommandResult


class Crawler(ABC):
    """
    Produces a local mirror of the source site under a build directory.

    Implementations lay files out as <build_dir>/<source_domain>/<path>.
    """

    def __init__(self, tolerated_exit_codes: Optional[Iterable[int]] = None, logger: Optional[logging.Logger] = None):
        self.tolerated_exit_codes = set(tolerated_exit_codes if tolerated_exit_codes is not None else (0, 8))
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def is_tolerated(self, result: CommandResult) -> bool:
        """Exit codes in the tolerated set count as a successful crawl"""
        return result.returncode in self.tolerated_exit_codes

    @abstractmethod
    async def crawl_full(self) -> CommandResult:
        """Recursively mirror the whole source site"""
        pass

    @abstractmethod
    async def crawl_selective(self, urls: List[str]) -> CommandResult:
        """Fetch only the given URLs plus their page requisites"""
        pass

    @abstractmethod
    async def fetch_file(self, url: str, dest: Path) -> CommandResult:
        """Download one URL to an exact destination path"""
        pass
