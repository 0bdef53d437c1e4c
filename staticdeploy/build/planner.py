import re
import logging
from typing import List
from urllib.parse import urlparse

from ..core.models import BuildPlan, ChangeSet


YEAR_SEGMENT = re.compile(r'/(\d{4})(?=/)')


class BuildPlanner:
    """Chooses between a full mirror and a selective rebuild."""

    def __init__(self, source_url: str):
        self.source_url = source_url.rstrip('/')
        self.logger = logging.getLogger(__name__)

    def plan(self, changeset: ChangeSet, threshold: int) -> BuildPlan:
        if changeset.is_first_build:
            self.logger.info("Full build: no previous build watermark")
            return BuildPlan.full()

        if len(changeset.urls) > threshold:
            self.logger.info(
                f"Full build: {len(changeset.urls)} changed URLs exceed threshold of {threshold}"
            )
            return BuildPlan.full()

        urls = self.selective_urls(changeset.urls)
        self.logger.info(
            f"Selective build: {len(changeset.urls)} changed URL(s), {len(urls)} total with dependencies"
        )
        return BuildPlan.selective(urls)

    def selective_urls(self, changed_urls: List[str]) -> List[str]:
        """Changed URLs followed by the pages that list them"""
        urls = list(changed_urls)
        urls.append(f"{self.source_url}/")
        urls.append(f"{self.source_url}/feed/")
        urls.append(f"{self.source_url}/feed/all.rss")

        for url in changed_urls:
            path = urlparse(url).path
            for year in YEAR_SEGMENT.findall(path):
                urls.append(f"{self.source_url}/{year}/")

        seen = set()
        unique = []
        for url in urls:
            if url not in seen:
                seen.add(url)
                unique.append(url)
        return unique
