"""
Test cases for the mirror pipeline, its stages and the wget crawler.
"""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from conftest import FakeCrawler, make_config

from staticdeploy.core.models import BuildPlan, CommandResult
from staticdeploy.crawl.wget_crawler import WgetCrawler
from staticdeploy.crawl.strategies import run_crawl_chain
from staticdeploy.core.errors import CrawlFailure
from staticdeploy.pipeline.base import MirrorPipeline, MirrorStage, StageResult
from staticdeploy.pipeline.stages import build_mirror_stages


RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Example</title>
<item><title>Hello</title><link>https://dev.example.com/2024/05/01/hello/</link><guid>https://dev.example.com/?p=1</guid></item>
</channel></rss>
"""

PAGES = {
    "index.html": "<html>\n<head><link rel='alternate' href='https://dev.example.com/feed/' /></head>\n<body>Home</body></html>",
    "about/index.html": "<html><body><a href=\"https://dev.example.com/\">Home</a></body></html>",
    "feed/index.html": RSS,
    "sitemap.xml.1": "<urlset/>",
}


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path / "work")


@pytest.fixture
def repo_dir(config):
    repo = config.repo_dir
    (repo / ".git").mkdir(parents=True)
    (repo / ".git" / "HEAD").write_text("ref: refs/heads/staging\n")
    (repo / "CNAME").write_text("www.example.com")
    (repo / "old-post").mkdir()
    (repo / "old-post" / "index.html").write_text("gone")
    (repo / "category" / "news").mkdir(parents=True)
    (repo / "category" / "news" / "index.html").write_text("legacy")
    return repo


async def run_pipeline(config, crawler, plan):
    pipeline = MirrorPipeline(config, crawler, build_mirror_stages())
    return await pipeline.run(config.build_dir, config.repo_dir, plan)


class TestMirrorPipeline:
    """End-to-end pipeline runs against a fake crawler"""

    @pytest.mark.asyncio
    async def test_full_build_produces_publishable_tree(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages=PAGES)

        result = await run_pipeline(config, crawler, BuildPlan.full())

        assert result.success is True
        assert result.stage == "complete"
        assert crawler.calls[0] == "full"

        # feeds
        feed = (repo_dir / "feed" / "all.rss").read_text()
        assert "<guid>https://www.example.com/2024/05/01/hello/</guid>" in feed
        assert not (repo_dir / "feed" / "index.html").exists()

        # html rewriting
        index = (repo_dir / "index.html").read_text()
        assert index == '<html><head><link rel="alternate" href="https://www.example.com/feed/all.rss"></head><body>Home</body></html>'

        # extras
        robots = (repo_dir / "robots.txt").read_text()
        assert robots == "User-Agent: *\nSitemap: https://www.example.com/sitemap.xml"
        assert (repo_dir / "sitemap.xml").exists()

        # cleanup
        assert not (repo_dir / "sitemap.xml.1").exists()
        assert not (repo_dir / "old-post").exists()
        assert not (repo_dir / "category").exists()
        assert (repo_dir / "CNAME").read_text() == "www.example.com"
        assert (repo_dir / ".git" / "HEAD").exists()

    @pytest.mark.asyncio
    async def test_selective_build_keeps_unlisted_content(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"about/index.html": "<p>new</p>"})
        plan = BuildPlan.selective(["https://dev.example.com/about/", "https://dev.example.com/"])

        result = await run_pipeline(config, crawler, plan)

        assert result.success is True
        assert crawler.calls[0] == "selective"
        assert crawler.selective_urls == plan.urls
        assert (repo_dir / "about" / "index.html").read_text() == "<p>new</p>"
        assert (repo_dir / "old-post" / "index.html").exists()
        stale = next(r for r in result.stage_results if r.stage_name == "stale_content")
        assert stale.skipped is True

    @pytest.mark.asyncio
    async def test_legacy_directory_removed_on_selective_build(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"})

        await run_pipeline(config, crawler, BuildPlan.selective(["https://dev.example.com/"]))

        assert not (repo_dir / "category").exists()

    @pytest.mark.asyncio
    async def test_selective_failure_falls_back_to_full(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"}, selective_exit=4)

        result = await run_pipeline(config, crawler, BuildPlan.selective(["https://dev.example.com/"]))

        assert result.success is True
        assert crawler.calls[:2] == ["selective", "full"]

    @pytest.mark.asyncio
    async def test_tolerated_exit_code_counts_as_success(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"}, full_exit=8)

        result = await run_pipeline(config, crawler, BuildPlan.full())

        assert result.success is True

    @pytest.mark.asyncio
    async def test_full_crawl_failure_stops_pipeline(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"}, full_exit=4)

        result = await run_pipeline(config, crawler, BuildPlan.full())

        assert result.success is False
        assert result.stage == "crawl"
        assert "exited with code 4" in result.error
        assert (repo_dir / "old-post").exists()

    @pytest.mark.asyncio
    async def test_missing_extra_files_are_not_fatal(self, config, repo_dir):
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"}, extras={})

        result = await run_pipeline(config, crawler, BuildPlan.full())

        assert result.success is True
        assert "fetch:sitemap.xml" in crawler.calls
        assert "fetch:404.html" in crawler.calls

    @pytest.mark.asyncio
    async def test_cache_priming_removes_key_pages(self, config, repo_dir):
        site = config.build_dir / "dev.example.com"
        (site / "about").mkdir(parents=True)
        (site / "about" / "index.html").write_text("cached")
        crawler = FakeCrawler(config.build_dir, pages={"index.html": "x"})
        plan = BuildPlan.selective(["https://dev.example.com/"])

        await run_pipeline(config, crawler, plan)

        assert not (site / "about" / "index.html").exists()

    @pytest.mark.asyncio
    async def test_stage_exception_is_reported(self, config, repo_dir):

        class Exploding(MirrorStage):
            name = "exploding"

            async def execute(self, context):
                raise RuntimeError("disk on fire")

        pipeline = MirrorPipeline(config, FakeCrawler(config.build_dir), [Exploding()])

        result = await pipeline.run(config.build_dir, config.repo_dir, BuildPlan.full())

        assert result.success is False
        assert result.stage == "exploding"
        assert result.error == "disk on fire"

    @pytest.mark.asyncio
    async def test_non_fatal_stage_failure_continues(self, config, repo_dir):

        class Grumpy(MirrorStage):
            name = "grumpy"

            async def execute(self, context):
                return StageResult(stage_name=self.name, success=False, error="meh")

        class Counter(MirrorStage):
            name = "counter"
            ran = False

            async def execute(self, context):
                Counter.ran = True
                return self._result(1)

        pipeline = MirrorPipeline(config, FakeCrawler(config.build_dir), [Grumpy(), Counter()])

        result = await pipeline.run(config.build_dir, config.repo_dir, BuildPlan.full())

        assert result.success is True
        assert Counter.ran is True


class TestCrawlChain:
    """Test strategy ordering outside the pipeline"""

    @pytest.mark.asyncio
    async def test_full_plan_never_tries_selective(self, tmp_path):
        crawler = FakeCrawler(tmp_path)

        attempt = await run_crawl_chain(crawler, BuildPlan.full())

        assert attempt.strategy == "full"
        assert crawler.calls == ["full"]

    @pytest.mark.asyncio
    async def test_both_failing_raises_with_exit_code(self, tmp_path):
        crawler = FakeCrawler(tmp_path, selective_exit=5, full_exit=6)

        with pytest.raises(CrawlFailure) as exc_info:
            await run_crawl_chain(crawler, BuildPlan.selective(["https://dev.example.com/"]))

        assert exc_info.value.exit_code == 6
        assert "boom" in str(exc_info.value)


class TestWgetCrawler:
    """Test wget command construction with the process runner patched"""

    @pytest.fixture
    def crawler(self, config):
        return WgetCrawler(config.crawl, config.site, config.build_dir, config.wget_input_path)

    def test_full_command(self, crawler, config):
        command = crawler.full_command()

        assert command[0] == "wget"
        assert "--mirror" in command
        assert "--domains=dev.example.com" in command
        assert "--exclude-domains=www.example.com" in command
        assert command[-3:] == ["https://dev.example.com", "-P", str(config.build_dir)]

    def test_category_archives_rejected_by_default(self, crawler):
        assert "--reject-regex=/category/" in crawler.full_command()
        assert "--reject-regex=/category/" in crawler.selective_command()

    def test_reject_patterns(self, config):
        config.crawl.reject_patterns = ["/category/", r"\?replytocom="]
        crawler = WgetCrawler(config.crawl, config.site, config.build_dir, config.wget_input_path)

        assert "--reject-regex=/category/|\\?replytocom=" in crawler.full_command()

    @pytest.mark.asyncio
    async def test_selective_writes_and_removes_input_file(self, crawler, config):
        seen = {}

        async def fake_run(args, cwd=None, env=None):
            seen['args'] = args
            seen['input'] = config.wget_input_path.read_text()
            return CommandResult(args=args, returncode=0)

        with patch('staticdeploy.crawl.wget_crawler.run_command', side_effect=fake_run):
            result = await crawler.crawl_selective(["https://dev.example.com/a/", "https://dev.example.com/"])

        assert result.ok
        assert "--mirror" not in seen['args']
        assert f"--input-file={config.wget_input_path}" in seen['args']
        assert seen['input'] == "https://dev.example.com/a/\nhttps://dev.example.com/\n"
        assert not config.wget_input_path.exists()

    @pytest.mark.asyncio
    async def test_failed_fetch_removes_empty_file(self, crawler, tmp_path):
        dest = tmp_path / "site" / "sitemap.xml"

        async def fake_run(args, cwd=None, env=None):
            Path(args[-1]).write_text("")
            return CommandResult(args=args, returncode=8)

        with patch('staticdeploy.crawl.wget_crawler.run_command', AsyncMock(side_effect=fake_run)):
            result = await crawler.fetch_file("https://dev.example.com/sitemap.xml", dest)

        assert result.returncode == 8
        assert not dest.exists()
