from ...crawl.strategies import run_crawl_chain
from ..base import MirrorStage, MirrorContext, StageResult


# Custom 404 pages are expected to come back with an error status
EXPECTED_ERROR_FILES = {"404.html"}


class CachePrimingStage(MirrorStage):
    """Deletes cached copies of key pages so the crawl fetches them fresh."""

    name = "cache_priming"

    async def execute(self, context: MirrorContext) -> StageResult:
        removed = 0
        for page in context.config.crawl.cache_clean_pages:
            page = page.strip().lstrip('/')
            if not page:
                continue
            path = context.site_dir / page
            try:
                if path.is_file():
                    path.unlink()
                    removed += 1
                    self.logger.info(f"Cleaned cached file: {page}")
            except OSError as e:
                self.logger.warning(f"could not remove cached file {page}: {e}")
        return self._result(removed)


class CrawlStage(MirrorStage):
    """Mirrors the source site, then fetches the best-effort extra files."""

    name = "crawl"
    fatal = True

    async def execute(self, context: MirrorContext) -> StageResult:
        context.site_dir.mkdir(parents=True, exist_ok=True)

        attempt = await run_crawl_chain(context.crawler, context.plan)
        context.metadata['crawl_strategy'] = attempt.strategy
        context.metadata['crawl_exit_code'] = attempt.exit_code

        fetched = 0
        source_url = context.config.site.source_url
        for name in context.config.crawl.extra_files:
            dest = context.site_dir / name
            try:
                result = await context.crawler.fetch_file(f"{source_url}/{name}", dest)
            except OSError as e:
                self.logger.warning(f"failed to download {name}: {e}")
                continue
            if result.ok:
                fetched += 1
            elif name not in EXPECTED_ERROR_FILES:
                self.logger.warning(f"failed to download {name}")

        return self._result(fetched)
