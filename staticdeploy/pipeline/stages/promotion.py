import os
import shutil
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Set

from ..base import MirrorStage, MirrorContext, StageResult, VCS_DIR, walk_files


class PromotionStage(MirrorStage):
    """Copies the processed mirror into the repository working tree."""

    name = "promotion"
    fatal = True

    async def execute(self, context: MirrorContext) -> StageResult:
        source = context.site_dir
        if not source.is_dir():
            return self._result(success=False, error=f"Build source directory not found: {source}")

        self.logger.info("Copying build output to repo...")
        context.repo_dir.mkdir(parents=True, exist_ok=True)

        copied = 0
        for path in walk_files(source):
            target = context.repo_dir / path.relative_to(source)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
                copied += 1
            except OSError as e:
                self.logger.warning(f"could not copy {path}: {e}")

        self.logger.info(f"Copied {copied} files to repo")
        return self._result(copied)


class DuplicateCleanupStage(MirrorStage):
    """Removes numbered duplicates (e.g. sitemap.xml.1) the crawler leaves behind."""

    name = "duplicate_cleanup"
    pattern = "*.[0-9]"

    async def execute(self, context: MirrorContext) -> StageResult:
        removed = 0
        for path in walk_files(context.repo_dir):
            if not fnmatch(path.name, self.pattern):
                continue
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                self.logger.warning(f"could not remove duplicate {path}: {e}")
        if removed:
            self.logger.info(f"Removed {removed} numbered duplicate file(s)")
        return self._result(removed)


def _is_preserved(relative: str, preserved: Iterable[str]) -> bool:
    return any(fnmatch(relative, pattern) for pattern in preserved)


class StaleContentStage(MirrorStage):
    """
    Deletes repository content that the fresh full mirror no longer has.

    Only meaningful for full builds: a selective crawl says nothing about
    which files went away.
    """

    name = "stale_content"

    def applies_to(self, context: MirrorContext) -> bool:
        return context.plan.is_full

    async def execute(self, context: MirrorContext) -> StageResult:
        mirror = context.site_dir
        repo = context.repo_dir
        preserved = context.config.publish_tree.preserved_files

        mirrored: Set[str] = {p.relative_to(mirror).as_posix() for p in walk_files(mirror)}

        removed = 0
        for path in walk_files(repo):
            relative = path.relative_to(repo).as_posix()
            if relative in mirrored or _is_preserved(relative, preserved):
                continue
            try:
                path.unlink()
                removed += 1
                self.logger.debug(f"Removed stale file: {relative}")
            except OSError as e:
                self.logger.warning(f"could not remove stale file {relative}: {e}")

        self._remove_empty_dirs(repo)
        removed += self._remove_orphan_top_level(repo, mirror, preserved)

        if removed:
            self.logger.info(f"Removed {removed} stale item(s) from repo")
        return self._result(removed)

    def _remove_empty_dirs(self, repo: Path) -> None:
        for dirpath, dirnames, _ in os.walk(repo, topdown=False):
            path = Path(dirpath)
            if path == repo or VCS_DIR in path.relative_to(repo).parts:
                continue
            try:
                if not any(path.iterdir()):
                    path.rmdir()
            except OSError as e:
                self.logger.warning(f"could not remove empty directory {path}: {e}")

    def _remove_orphan_top_level(self, repo: Path, mirror: Path, preserved: Iterable[str]) -> int:
        removed = 0
        for entry in sorted(repo.iterdir()):
            if not entry.is_dir() or entry.name == VCS_DIR or _is_preserved(entry.name, preserved):
                continue
            if (mirror / entry.name).exists():
                continue
            try:
                shutil.rmtree(entry)
                removed += 1
                self.logger.info(f"Removed stale directory: {entry.name}/")
            except OSError as e:
                self.logger.warning(f"could not remove directory {entry.name}: {e}")
        return removed


class LegacyPathStage(MirrorStage):
    """Removes legacy top-level paths that must never be published."""

    name = "legacy_paths"

    async def execute(self, context: MirrorContext) -> StageResult:
        removed = 0
        for name in context.config.publish_tree.legacy_directories:
            path = context.repo_dir / name.strip('/')
            if path == context.repo_dir or not path.exists():
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                removed += 1
                self.logger.info(f"Removed legacy path: {name}")
            except OSError as e:
                self.logger.warning(f"could not remove legacy path {name}: {e}")
        return self._result(removed)
