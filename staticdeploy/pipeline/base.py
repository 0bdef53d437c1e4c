import os
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..config.deploy_config import DeployConfig
from ..core.errors import CrawlFailure
from ..core.models import BuildPlan, PipelineResult
from ..crawl.base import Crawler


VCS_DIR = ".git"


@dataclass
class MirrorContext:
    """State shared by the stages of one pipeline run"""
    config: DeployConfig
    build_dir: Path
    repo_dir: Path
    plan: BuildPlan
    crawler: Crawler
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def site_dir(self) -> Path:
        """Root of the mirrored tree: <build_dir>/<source_domain>"""
        return self.build_dir / self.config.site.source_domain


@dataclass
class StageResult:
    """Result from a pipeline stage"""
    stage_name: str
    success: bool
    items_processed: int = 0
    skipped: bool = False
    error: Optional[str] = None
    duration_ms: Optional[float] = None


class MirrorStage(ABC):
    """
    Base class for all mirror pipeline stages.

    A fatal stage that fails stops the pipeline; other stages report
    per-file problems as warnings and carry on.
    """

    name: str = "stage"
    fatal: bool = False

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(f"{__name__}.{self.name}")

    def applies_to(self, context: MirrorContext) -> bool:
        """Determine if this stage should run for the given context"""
        return True

    @abstractmethod
    async def execute(self, context: MirrorContext) -> StageResult:
        pass

    def _result(self, processed: int = 0, success: bool = True, error: Optional[str] = None) -> StageResult:
        return StageResult(stage_name=self.name, success=success, items_processed=processed, error=error)


class MirrorPipeline:
    """Runs the mirror stages in their fixed order."""

    def __init__(self, config: DeployConfig, crawler: Crawler, stages: List[MirrorStage]):
        self.config = config
        self.crawler = crawler
        self.stages = stages
        self.logger = logging.getLogger(__name__)

    async def run(self, build_dir: Path, repo_dir: Path, plan: BuildPlan) -> PipelineResult:
        context = MirrorContext(
            config=self.config,
            build_dir=Path(build_dir),
            repo_dir=Path(repo_dir),
            plan=plan,
            crawler=self.crawler,
        )
        results: List[StageResult] = []

        for stage in self.stages:
            if not stage.applies_to(context):
                self.logger.debug(f"Skipping stage {stage.name} for {plan.mode.value} build")
                results.append(StageResult(stage_name=stage.name, success=True, skipped=True))
                continue

            started = time.monotonic()
            try:
                result = await stage.execute(context)
            except CrawlFailure as e:
                self.logger.error(f"Crawl failed: {e}")
                return PipelineResult(success=False, stage=stage.name, error=str(e), stage_results=results)
            except Exception as e:
                self.logger.error(f"Stage {stage.name} raised: {e}", exc_info=True)
                return PipelineResult(success=False, stage=stage.name, error=str(e), stage_results=results)

            result.duration_ms = (time.monotonic() - started) * 1000
            results.append(result)

            if not result.success:
                if stage.fatal:
                    return PipelineResult(
                        success=False, stage=stage.name, error=result.error, stage_results=results
                    )
                self.logger.warning(f"Stage {stage.name} completed with errors: {result.error}")

        return PipelineResult(success=True, stage="complete", stage_results=results)


def walk_files(root: Path, skip_dirs: Tuple[str, ...] = (VCS_DIR,)) -> Iterator[Path]:
    """Yield every file below root, pruning the named directories"""
    root = Path(root)
    if not root.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def find_files(root: Path, suffixes: Tuple[str, ...]) -> List[Path]:
    return [p for p in walk_files(root) if p.name.endswith(suffixes)]


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="surrogateescape")


def write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8", errors="surrogateescape")
