"""
Version-control capability used by the reconciler.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from ..core.models import CommandResult


class VersionControl(ABC):
    """Runs version-control commands against a working directory"""

    @abstractmethod
    async def run(self, repo_dir: Path, args: List[str]) -> CommandResult:
        pass

    async def version(self) -> CommandResult:
        return await self.run(Path("."), ["--version"])
