"""
Crawl strategies tried in order: selective first, full as the fallback.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..core.enums import StrategyStatus
from ..core.errors import CrawlFailure
from ..core.models import BuildPlan, CommandResult
from .base import Crawler


logger = logging.getLogger(__name__)


@dataclass
class CrawlAttempt:
    strategy: str
    status: StrategyStatus
    exit_code: Optional[int] = None
    detail: Optional[str] = None


class CrawlStrategy(ABC):
    name: str = "crawl"

    @abstractmethod
    async def crawl(self, crawler: Crawler, plan: BuildPlan) -> CrawlAttempt:
        pass

    def _classify(self, crawler: Crawler, result: CommandResult) -> CrawlAttempt:
        if crawler.is_tolerated(result):
            if result.returncode != 0:
                logger.info(f"{self.name} crawl finished with tolerated exit code {result.returncode}")
            return CrawlAttempt(self.name, StrategyStatus.SUCCESS, result.returncode)
        tail = result.output.splitlines()[-5:]
        return CrawlAttempt(
            self.name, StrategyStatus.HARD_FAIL, result.returncode, "\n".join(tail) or None
        )


class SelectiveCrawlStrategy(CrawlStrategy):
    name = "selective"

    async def crawl(self, crawler: Crawler, plan: BuildPlan) -> CrawlAttempt:
        if plan.is_full or not plan.urls:
            return CrawlAttempt(self.name, StrategyStatus.SOFT_FAIL, detail="no URLs to fetch")
        return self._classify(crawler, await crawler.crawl_selective(plan.urls))


class FullCrawlStrategy(CrawlStrategy):
    name = "full"

    async def crawl(self, crawler: Crawler, plan: BuildPlan) -> CrawlAttempt:
        return self._classify(crawler, await crawler.crawl_full())


def strategies_for(plan: BuildPlan) -> List[CrawlStrategy]:
    if plan.is_full:
        return [FullCrawlStrategy()]
    return [SelectiveCrawlStrategy(), FullCrawlStrategy()]


async def run_crawl_chain(crawler: Crawler, plan: BuildPlan) -> CrawlAttempt:
    """
    Run the crawl strategies for a plan until one succeeds.

    Raises:
        CrawlFailure: If the last strategy failed hard
    """
    attempt = None
    for strategy in strategies_for(plan):
        attempt = await strategy.crawl(crawler, plan)
        if attempt.status == StrategyStatus.SUCCESS:
            return attempt
        if attempt.status == StrategyStatus.HARD_FAIL:
            logger.warning(
                f"{strategy.name.capitalize()} crawl failed (exit {attempt.exit_code})"
                + (", falling back to full mirror" if strategy.name == "selective" else "")
            )

    raise CrawlFailure(
        f"Mirror failed: {attempt.strategy} crawl exited with code {attempt.exit_code}"
        + (f"\n{attempt.detail}" if attempt.detail else ""),
        exit_code=attempt.exit_code,
    )
