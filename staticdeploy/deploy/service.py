"""
Deployment service - trigger and status operations around the coordinator.

This is the surface external callers (CLI, web hooks, admin screens) use.
"""
import os
import sys
import subprocess
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..build.lock import RunLock
from ..build.watermark import WatermarkStore
from ..config.deploy_config import DeployConfig
from ..core.enums import ResultKind
from ..core.models import ConnectionCheck, LastResult, RunOutcome
from ..monitoring.logs_storage import DeployLogStorage
from ..monitoring.result_storage import ResultStorage
from ..publish.publisher import PullRequestPublisher
from ..utils.process import run_command
from .factory import build_coordinator, deploy_log_storage, trigger_log_storage


@dataclass
class PrerequisiteCheck:
    name: str
    ok: bool
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeploymentService:
    """
    Service for triggering deploy runs and reporting their state.

    Responsibilities:
    - Fire-and-forget triggering in a detached process
    - Synchronous runs for the CLI
    - Status, log tail and last result
    - Connection test and prerequisite diagnostics
    """

    def __init__(self, config: DeployConfig, config_path: Optional[str] = None):
        self.config = config
        self.config_path = config_path
        self.run_lock = RunLock(config.lock_path)
        self.watermark_store = WatermarkStore(config.watermark_path)
        self.result_storage = ResultStorage(config.result_path)
        self.deploy_log: DeployLogStorage = deploy_log_storage(config)
        self.trigger_log: DeployLogStorage = trigger_log_storage(config)
        self.logger = logging.getLogger(__name__)

    # Triggering

    def start_run(self, full: bool = False) -> bool:
        """
        Launch a deploy run in a detached process and return immediately.

        Returns:
            False when a run already holds the lock (nothing is launched)
        """
        if self.run_lock.is_locked():
            self.trigger_log.append("Deploy already running, skipping trigger")
            self.logger.info("Deploy already running, skipping trigger")
            return False

        command = [sys.executable, "-m", "staticdeploy", "run"]
        if self.config_path:
            command += ["--config", str(Path(self.config_path).resolve())]
        if full:
            command.append("--full")

        self.config.logs_dir.mkdir(parents=True, exist_ok=True)
        with open(os.devnull, "wb") as devnull:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=devnull,
                stderr=devnull,
                start_new_session=True,
            )
        self.trigger_log.append(f"Deploy triggered{' (full rebuild)' if full else ''}, pid {process.pid}")
        self.logger.info(f"Deploy triggered in background (pid {process.pid})")
        return True

    async def run(self, full: bool = False) -> RunOutcome:
        """Run a deploy in this process; a full run clears the watermark under the lock"""
        coordinator = build_coordinator(self.config)
        return await coordinator.run(force_full=full)

    def request_full_rebuild(self) -> bool:
        """
        Forget the build watermark so the next run mirrors everything.

        Raises:
            LockContention: If a run is in progress (the watermark is left alone)
        """
        self.run_lock.acquire()
        try:
            cleared = self.watermark_store.clear()
        finally:
            self.run_lock.release()
        if cleared:
            self.deploy_log.append("Manual full deploy requested, build timestamp cleared")
        return cleared

    # Status

    def is_running(self) -> bool:
        return self.run_lock.is_locked()

    def last_watermark(self) -> Optional[str]:
        return self.watermark_store.read_raw()

    def tail_log(self, lines: int = 50) -> str:
        return self.deploy_log.tail(lines)

    def last_result(self) -> LastResult:
        return self.result_storage.read()

    def lock_info(self) -> Optional[Dict[str, Any]]:
        return self.run_lock.info()

    def unlock(self, force: bool = False) -> bool:
        removed = self.run_lock.break_lock(force=force)
        if removed:
            self.trigger_log.append(f"Run lock cleared{' (forced)' if force else ''}")
        return removed

    def status(self) -> Dict[str, Any]:
        """Combined status for display"""
        running = self.is_running()
        last = self.last_result()
        if running:
            message = "Build in progress..."
        elif last.kind == ResultKind.NONE:
            message = "Idle"
        else:
            message = f"Idle (last build: {last.kind.value})"
        return {
            'running': running,
            'message': message,
            'last_build_time': self.last_watermark(),
            'last_result': last.to_dict(),
            'lock': self.lock_info(),
        }

    # Diagnostics

    async def test_connection(self) -> ConnectionCheck:
        return await PullRequestPublisher(self.config.github).test_connection()

    async def check_prerequisites(self) -> List[PrerequisiteCheck]:
        checks = [
            await self._tool_check("git", [self.config.git.binary, "--version"]),
            await self._tool_check("wget", [self.config.crawl.wget_binary, "--version"]),
        ]

        working_dir = self.config.working_dir
        try:
            working_dir.mkdir(parents=True, exist_ok=True)
            writable = os.access(working_dir, os.W_OK)
            detail = str(working_dir) if writable else f"{working_dir} is not writable"
        except OSError as e:
            writable, detail = False, f"cannot create {working_dir}: {e}"
        checks.append(PrerequisiteCheck("working_dir", writable, detail))

        repo_ok = (self.config.repo_dir / ".git").exists()
        checks.append(PrerequisiteCheck(
            "git_repo", repo_ok,
            str(self.config.repo_dir) if repo_ok else f"{self.config.repo_dir} is not a git repository"
        ))
        checks.append(PrerequisiteCheck(
            "github_token", bool(self.config.github.token),
            "configured" if self.config.github.token else "not configured"
        ))
        checks.append(PrerequisiteCheck(
            "source_url", bool(self.config.site.source_url),
            self.config.site.source_url or "not configured"
        ))
        return checks

    async def _tool_check(self, name: str, command: List[str]) -> PrerequisiteCheck:
        try:
            result = await run_command(command)
        except OSError as e:
            return PrerequisiteCheck(name, False, f"not found: {e}")
        if not result.ok:
            return PrerequisiteCheck(name, False, f"exited with {result.returncode}")
        first_line = result.stdout.strip().splitlines()[0] if result.stdout.strip() else name
        return PrerequisiteCheck(name, True, first_line)
