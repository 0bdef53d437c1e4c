"""
Async subprocess helper shared by the crawler and the git capability.
"""
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.models import CommandResult


logger = logging.getLogger(__name__)


async def run_command(
    args: List[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """
    Run an external command and capture its output.

    No timeout is applied; the caller owns the process lifetime.

    Raises:
        FileNotFoundError: If the executable does not exist
    """
    logger.debug(f"Running: {' '.join(args)}" + (f" (cwd={cwd})" if cwd else ""))

    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    result = CommandResult(
        args=list(args),
        returncode=process.returncode,
        stdout=stdout.decode('utf-8', errors='replace'),
        stderr=stderr.decode('utf-8', errors='replace'),
    )
    if not result.ok:
        logger.debug(f"Command exited with {result.returncode}: {args[0]}")
    return result
