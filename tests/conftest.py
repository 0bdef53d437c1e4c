"""Pytest configuration and fixtures for staticdeploy tests."""

import sys
import shutil
import subprocess
import logging
from pathlib import Path
from typing import Dict, List, Optional
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from staticdeploy.config.deploy_config import DeployConfig
from staticdeploy.core.models import CommandResult
from staticdeploy.crawl.base import Crawler

# Configure logging
logging.basicConfig(level=logging.INFO)

SOURCE_URL = "https://dev.example.com"
PRODUCTION_URL = "https://www.example.com"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class FakeCrawler(Crawler):
    """
    Writes pages into <build_dir>/<domain> the way wget lays them out.

    pages maps a relative path to its content; selective_pages does the same
    for selective crawls (defaults to pages).
    """

    def __init__(
        self,
        build_dir: Path,
        domain: str = "dev.example.com",
        pages: Optional[Dict[str, str]] = None,
        selective_pages: Optional[Dict[str, str]] = None,
        extras: Optional[Dict[str, str]] = None,
        full_exit: int = 0,
        selective_exit: int = 0,
    ):
        super().__init__(tolerated_exit_codes=[0, 8])
        self.build_dir = Path(build_dir)
        self.domain = domain
        self.pages = pages or {}
        self.selective_pages = selective_pages
        self.extras = extras if extras is not None else {"sitemap.xml": "<urlset/>"}
        self.full_exit = full_exit
        self.selective_exit = selective_exit
        self.calls: List[str] = []
        self.selective_urls: List[str] = []

    def _write(self, pages: Dict[str, str]) -> None:
        for relative, content in pages.items():
            path = self.build_dir / self.domain / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

    async def crawl_full(self) -> CommandResult:
        self.calls.append("full")
        if self.full_exit in self.tolerated_exit_codes:
            self._write(self.pages)
        return CommandResult(args=["wget", "--mirror"], returncode=self.full_exit, stderr="boom" if self.full_exit else "")

    async def crawl_selective(self, urls: List[str]) -> CommandResult:
        self.calls.append("selective")
        self.selective_urls = list(urls)
        if self.selective_exit in self.tolerated_exit_codes:
            self._write(self.selective_pages if self.selective_pages is not None else self.pages)
        return CommandResult(args=["wget", "--input-file"], returncode=self.selective_exit)

    async def fetch_file(self, url: str, dest: Path) -> CommandResult:
        name = url.rsplit("/", 1)[-1]
        self.calls.append(f"fetch:{name}")
        if name in self.extras:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(self.extras[name])
            return CommandResult(args=["wget", url], returncode=0)
        return CommandResult(args=["wget", url], returncode=8)


def make_config(working_dir: Path, **overrides) -> DeployConfig:
    data = {
        'site': {'source_url': SOURCE_URL, 'production_url': PRODUCTION_URL},
        'storage': {'working_dir': str(working_dir)},
        'github': {'repo': 'example/site', 'token': 'test-token'},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return DeployConfig.from_dict(data)


@pytest.fixture(autouse=True)
def no_env_secrets(monkeypatch):
    """Keep real secrets in the environment out of the tests"""
    monkeypatch.delenv("STATICDEPLOY_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("STATICDEPLOY_DB_PASSWORD", raising=False)


@pytest.fixture
def deploy_config(tmp_path):
    """Deploy configuration rooted in a temporary working directory"""
    return make_config(tmp_path / "work")


@pytest.fixture
def git_identity(monkeypatch, tmp_path):
    """Deterministic author/committer for git-backed tests"""
    for var, value in {
        "GIT_AUTHOR_NAME": "Deploy Test",
        "GIT_AUTHOR_EMAIL": "deploy@example.com",
        "GIT_COMMITTER_NAME": "Deploy Test",
        "GIT_COMMITTER_EMAIL": "deploy@example.com",
        "GIT_CONFIG_NOSYSTEM": "1",
    }.items():
        monkeypatch.setenv(var, value)
    monkeypatch.setenv("HOME", str(tmp_path))


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), check=True, capture_output=True, text=True
    )
    return result.stdout


@pytest.fixture
def git_remote(tmp_path, git_identity):
    """
    A bare remote with master and staging branches plus a clone at work/repo.

    Returns (remote_dir, seed_dir, repo_dir); seed_dir is a second clone used
    to simulate production-side commits.
    """
    remote = tmp_path / "remote.git"
    seed = tmp_path / "seed"
    repo = tmp_path / "work" / "repo"

    git(tmp_path, "init", "-q", "--bare", str(remote))
    git(remote, "symbolic-ref", "HEAD", "refs/heads/master")
    git(tmp_path, "init", "-q", str(seed))
    git(seed, "symbolic-ref", "HEAD", "refs/heads/master")
    (seed / "index.html").write_text("<html>v1</html>")
    (seed / "CNAME").write_text("www.example.com")
    git(seed, "add", "-A")
    git(seed, "commit", "-q", "-m", "initial")
    git(seed, "remote", "add", "origin", str(remote))
    git(seed, "push", "-q", "origin", "master")
    git(seed, "push", "-q", "origin", "master:staging")

    repo.parent.mkdir(parents=True, exist_ok=True)
    git(tmp_path, "clone", "-q", str(remote), str(repo))
    return remote, seed, repo
