"""
wget-backed crawler.
"""
from pathlib import Path
from typing import List, Optional
import logging

from ..config.deploy_config import CrawlConfig, SiteConfig
from ..core.models import CommandResult
from ..utils.process import run_command
from .base import Crawler


class WgetCrawler(Crawler):
    """
    Mirrors the source site with wget.

    Full mode uses --mirror; selective mode feeds an explicit URL list via
    --input-file and keeps page requisites but does not recurse.
    """

    def __init__(
        self,
        crawl_config: CrawlConfig,
        site_config: SiteConfig,
        build_dir: Path,
        input_file: Path,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(crawl_config.tolerated_exit_codes, logger)
        self.crawl_config = crawl_config
        self.site_config = site_config
        self.build_dir = Path(build_dir)
        self.input_file = Path(input_file)

    def _domain_args(self) -> List[str]:
        domains = [self.site_config.source_domain] + list(self.site_config.allowed_domains)
        exclude = [self.site_config.production_domain] + list(self.site_config.exclude_domains)
        args = [
            f"--domains={','.join(d for d in domains if d)}",
            f"--exclude-domains={','.join(d for d in exclude if d)}",
        ]
        if self.crawl_config.reject_patterns:
            args.append(f"--reject-regex={'|'.join(self.crawl_config.reject_patterns)}")
        return args

    def _base_args(self, recursive: bool) -> List[str]:
        args = [self.crawl_config.wget_binary, *self.crawl_config.extra_args,
                "--page-requisites", "--adjust-extension"]
        if recursive:
            args.append("--mirror")
        args.append("--span-hosts")
        args.extend(self._domain_args())
        return args

    def full_command(self) -> List[str]:
        return self._base_args(recursive=True) + [
            self.site_config.source_url, "-P", str(self.build_dir)
        ]

    def selective_command(self) -> List[str]:
        return self._base_args(recursive=False) + [
            f"--input-file={self.input_file}", "-P", str(self.build_dir)
        ]

    async def crawl_full(self) -> CommandResult:
        self.build_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info("Running full wget mirror...")
        return await run_command(self.full_command())

    async def crawl_selective(self, urls: List[str]) -> CommandResult:
        self.build_dir.mkdir(parents=True, exist_ok=True)
        self.input_file.parent.mkdir(parents=True, exist_ok=True)
        self.input_file.write_text("\n".join(urls) + "\n")
        self.logger.info(f"Selective mirror: downloading {len(urls)} URLs")
        try:
            return await run_command(self.selective_command())
        finally:
            self.input_file.unlink(missing_ok=True)

    async def fetch_file(self, url: str, dest: Path) -> CommandResult:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        result = await run_command(
            [self.crawl_config.wget_binary, *self.crawl_config.extra_args, url, "-O", str(dest)]
        )
        # wget -O leaves an empty file behind when the download fails
        if not result.ok and dest.exists() and dest.stat().st_size == 0:
            dest.unlink()
        return result
