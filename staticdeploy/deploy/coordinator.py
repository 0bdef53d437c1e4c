"""
Run coordinator: one deploy run from change detection to pull request.
"""
import logging
from typing import Optional

from ..build.change_detector import ChangeDetector
from ..build.lock import RunLock
from ..build.planner import BuildPlanner
from ..build.watermark import WatermarkStore
from ..config.deploy_config import DeployConfig
from ..core.enums import OutcomeKind, ResultKind
from ..core.errors import ConfigError, DeployError, LockContention, PipelineFailure
from ..core.models import LastResult, RunOutcome
from ..monitoring.logging_collector import LoggingCollector
from ..monitoring.result_storage import ResultStorage
from ..pipeline.base import MirrorPipeline
from ..publish.publisher import PullRequestPublisher, build_pr_body
from ..vcs.reconciler import GitReconciler


MAX_ERROR_DETAIL = 500


def truncate(message: str, limit: int = MAX_ERROR_DETAIL) -> str:
    if len(message) <= limit:
        return message
    return message[:limit - 3] + "..."


class DeployCoordinator:
    """
    Sequences detect -> plan -> mirror -> reconcile -> publish under the run lock.

    Any stage failure aborts the rest of the run. Side effects of completed
    stages are kept: the watermark is advanced as soon as the mirror
    pipeline succeeds, even if git or the pull request later fails.
    """

    def __init__(
        self,
        config: DeployConfig,
        detector: ChangeDetector,
        planner: BuildPlanner,
        pipeline: MirrorPipeline,
        reconciler: GitReconciler,
        publisher: PullRequestPublisher,
        run_lock: Optional[RunLock] = None,
        watermark_store: Optional[WatermarkStore] = None,
        result_storage: Optional[ResultStorage] = None,
        log_collector: Optional[LoggingCollector] = None,
    ):
        self.config = config
        self.detector = detector
        self.planner = planner
        self.pipeline = pipeline
        self.reconciler = reconciler
        self.publisher = publisher
        self.run_lock = run_lock or RunLock(config.lock_path)
        self.watermark_store = watermark_store or WatermarkStore(config.watermark_path)
        self.result_storage = result_storage or ResultStorage(config.result_path)
        self.log_collector = log_collector
        self.logger = logging.getLogger(__name__)

    async def run(self, force_full: bool = False) -> RunOutcome:
        if self.log_collector:
            self.log_collector.start()
        try:
            try:
                async with self.run_lock:
                    return await self._run_locked(force_full)
            except LockContention:
                self.logger.info("Deploy already in progress (lock held), skipping")
                return RunOutcome(kind=OutcomeKind.SKIPPED, reason="another run holds the lock")
            except OSError as e:
                # Only the lock file itself gets here; stage errors end in _run_locked
                return self._fail(f"Run lock error: {e}")
        finally:
            if self.log_collector:
                self.log_collector.stop()

    async def _run_locked(self, force_full: bool) -> RunOutcome:
        self.logger.info("Starting auto-deploy process")
        try:
            return await self._execute(force_full)
        except DeployError as e:
            return self._fail(str(e))
        except Exception as e:
            return self._fail(f"Unexpected error: {e}", exc_info=True)

    async def _execute(self, force_full: bool) -> RunOutcome:
        issues = self.config.validate()
        if issues:
            raise ConfigError("Invalid configuration: " + "; ".join(issues))

        if force_full:
            # Cleared only while holding the lock so a skipped run changes nothing
            self.watermark_store.clear()
            self.logger.info("Manual full deploy requested, build timestamp cleared")
        watermark = None if force_full else self.watermark_store.read()

        changeset = await self.detector.detect(watermark)
        if changeset.is_empty() and not changeset.is_first_build:
            message = "No content changes detected"
            self.logger.info(f"{message}. Skipping deployment.")
            self._record(ResultKind.NO_CHANGES, message)
            return RunOutcome(kind=OutcomeKind.NO_CHANGES, reason=message)

        plan = self.planner.plan(changeset, self.config.build.selective_threshold)

        result = await self.pipeline.run(self.config.build_dir, self.config.repo_dir, plan)
        if not result.success:
            raise PipelineFailure(f"Mirror pipeline failed at {result.stage}: {result.error}", result.stage)

        stamp = self.watermark_store.write()
        self.logger.info(f"Build timestamp updated: {stamp}")

        reconciled = await self.reconciler.reconcile(self.config.repo_dir)
        if reconciled.is_noop:
            message = "No changes after merge with production"
            self._record(ResultKind.NO_CHANGES, message)
            return RunOutcome(kind=OutcomeKind.NO_CHANGES, reason=message)

        summary = reconciled.summary
        body = build_pr_body(self.config.site.source_url, summary.text, summary.file_count)
        pull_request = await self.publisher.publish(
            title=reconciled.title,
            body=body,
            head=self.config.git.staging_branch,
            base=self.config.git.production_branch,
            label=self.config.github.auto_merge_label or None,
        )

        message = f"Deployed {summary.file_count} file(s): {pull_request.html_url}"
        self._record(ResultKind.SUCCESS, message)
        self.logger.info("Auto-deploy completed successfully")
        return RunOutcome(kind=OutcomeKind.SUCCESS, reason=message, pull_request=pull_request)

    def _fail(self, message: str, exc_info: bool = False) -> RunOutcome:
        self.logger.error(message, exc_info=exc_info)
        self._record(ResultKind.ERROR, truncate(message))
        return RunOutcome(kind=OutcomeKind.FAILURE, reason=message)

    def _record(self, kind: ResultKind, message: str) -> None:
        try:
            self.result_storage.write(LastResult.now(kind, message))
        except OSError as e:
            self.logger.warning(f"Could not record last result: {e}")
