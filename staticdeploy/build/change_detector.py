"""
Change detector: runs the ordered change-source chain.
"""
import logging
from datetime import datetime
from typing import List, Optional

from ..core.enums import StrategyStatus
from ..core.errors import DetectionFailure
from ..core.models import ChangeSet
from .change_sources import ChangeSource, SourceResult
from .watermark import EPOCH, format_watermark


class ChangeDetector:
    """
    Detects content changed since the last successful build.

    Sources are tried in order; the first one that succeeds answers.
    """

    def __init__(self, sources: List[ChangeSource]):
        if not sources:
            raise ValueError("ChangeDetector needs at least one source")
        self.sources = sources
        self.logger = logging.getLogger(__name__)

    async def detect(self, watermark: Optional[datetime]) -> ChangeSet:
        """
        Build the ChangeSet for a run.

        Args:
            watermark: End of the last successful build, None on a first build

        Raises:
            DetectionFailure: If every source failed
        """
        is_first_build = watermark is None
        since = EPOCH if is_first_build else watermark

        if is_first_build:
            self.logger.info("First build - will do full mirror")
        else:
            self.logger.info(f"Last build: {format_watermark(since)}")

        failures: List[SourceResult] = []
        for source in self.sources:
            result = await source.fetch_changes(since)
            if result.status == StrategyStatus.SUCCESS:
                changeset = ChangeSet(
                    urls=result.urls,
                    urls_by_kind=result.urls_by_kind,
                    is_first_build=is_first_build,
                    source=result.source,
                )
                self.logger.info(
                    f"Detected {len(changeset.urls)} changed URL(s) via {result.source}"
                )
                return changeset

            failures.append(result)
            if result.status == StrategyStatus.SOFT_FAIL:
                self.logger.info(f"Change source {result.source} unavailable: {result.error}")
            else:
                self.logger.warning(f"Change source {result.source} failed: {result.error}")

        detail = "; ".join(f"{f.source}: {f.error}" for f in failures)
        raise DetectionFailure(f"Failed to detect changes ({detail})")
