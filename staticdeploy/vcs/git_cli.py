import logging
from pathlib import Path
from typing import List

from ..core.models import CommandResult
from ..utils.process import run_command
from .base import VersionControl


class GitCli(VersionControl):
    """VersionControl backed by the git executable."""

    def __init__(self, binary: str = "git"):
        self.binary = binary
        self.logger = logging.getLogger(__name__)

    async def run(self, repo_dir: Path, args: List[str]) -> CommandResult:
        result = await run_command([self.binary, *args], cwd=repo_dir)
        if not result.ok:
            self.logger.debug(f"git {' '.join(args[:3])} exited {result.returncode}: {result.stderr.strip()}")
        return result
