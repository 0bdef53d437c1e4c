"""
Reconciles the promoted mirror into the staging branch.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from ..config.deploy_config import GitConfig
from ..core.enums import ReconcileStatus
from ..core.errors import ReconciliationFailure
from ..core.models import ChangeSummary, CommandResult, ReconcileResult
from .base import VersionControl


COMMIT_SUBJECT_FORMAT = "Auto-deploy: Site update %Y-%m-%d %H:%M"
PATH_BATCH = 200


def build_change_summary(stat_lines: List[str], file_count: int, max_entries: int = 20) -> ChangeSummary:
    """
    Cap a diff-stat for display.

    Above max_entries files, keeps the first max_entries lines, then a
    "... and N more files" line, then the diff-stat total line.
    """
    stat_lines = [line for line in stat_lines if line.strip()]
    if file_count > max_entries:
        lines = stat_lines[:max_entries]
        lines.append(f"... and {file_count - max_entries} more files")
        if stat_lines:
            lines.append(stat_lines[-1])
        text = "\n".join(lines)
    else:
        text = "\n".join(stat_lines)
    return ChangeSummary(file_count=file_count, text=text, stat_lines=stat_lines)


def _split_z(output: str) -> List[str]:
    return [p for p in output.split("\0") if p]


def _batches(paths: List[str]) -> Iterator[List[str]]:
    for i in range(0, len(paths), PATH_BATCH):
        yield paths[i:i + PATH_BATCH]


class GitReconciler:
    """
    Commits the promoted mirror on the staging branch, pre-merged with
    production so the pull request merges cleanly.

    Conflicts are settled in favour of the freshly built content: a path
    the mirror has is taken from the mirror, a path it lacks is removed.
    Production is never pushed.
    """

    def __init__(self, vcs: VersionControl, config: GitConfig):
        self.vcs = vcs
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def _git(self, repo_dir: Path, *args: str, check: bool = True, what: Optional[str] = None) -> CommandResult:
        result = await self.vcs.run(repo_dir, list(args))
        if check and not result.ok:
            raise ReconciliationFailure(f"git {what or args[0]} failed (exit {result.returncode})", result)
        return result

    async def reconcile(self, repo_dir: Path) -> ReconcileResult:
        repo_dir = Path(repo_dir)
        remote = self.config.remote
        staging = self.config.staging_branch
        production = self.config.production_branch

        self.logger.info("Starting git operations...")
        await self._git(repo_dir, "fetch", remote)
        await self._git(repo_dir, "checkout", staging, what="checkout of staging branch")
        await self._git(repo_dir, "pull", remote, staging)

        self.logger.info("Staging new files from build...")
        await self._git(repo_dir, "add", "-A")
        mirror_tree = (await self._git(repo_dir, "write-tree")).stdout.strip()
        # git will not merge over a dirty index; the mirror is kept as a tree object
        await self._git(repo_dir, "reset", "-q", "--hard", "HEAD")

        self.logger.info("Pre-syncing with production branch to prevent conflicts...")
        merge = await self._git(
            repo_dir, "merge", "--no-commit", "--no-ff", f"{remote}/{production}", check=False
        )
        unmerged = _split_z((await self._git(
            repo_dir, "diff", "--name-only", "-z", "--diff-filter=U"
        )).stdout)
        if not merge.ok:
            if not unmerged:
                raise ReconciliationFailure("git merge failed", merge)
            self.logger.info(f"Merge conflicts detected in {len(unmerged)} file(s), auto-resolving...")

        await self._apply_mirror(repo_dir, mirror_tree, unmerged)
        await self._git(repo_dir, "add", "-A")

        diff_check = await self._git(repo_dir, "diff", "--cached", "--quiet", check=False)
        if diff_check.returncode == 0:
            self.logger.info("No changes detected after merge. Skipping deployment.")
            if (await self._git(repo_dir, "rev-parse", "-q", "--verify", "MERGE_HEAD", check=False)).ok:
                await self._git(repo_dir, "merge", "--abort")
            return ReconcileResult(status=ReconcileStatus.NOOP)
        if diff_check.returncode != 1:
            raise ReconciliationFailure("git diff --cached failed", diff_check)

        summary = await self._summarize(repo_dir)
        self.logger.info(f"Detected changes in {summary.file_count} file(s)")

        subject = datetime.now().strftime(COMMIT_SUBJECT_FORMAT)
        self.logger.info(f"Committing: {subject}")
        await self._git(repo_dir, "commit", "-q", "-m", subject, "-m", f"{summary.file_count} files changed")

        self.logger.info("Pushing to staging branch...")
        await self._git(repo_dir, "push", remote, staging)

        return ReconcileResult(status=ReconcileStatus.PUSHED, summary=summary, title=subject)

    async def _apply_mirror(self, repo_dir: Path, mirror_tree: str, unmerged: List[str]) -> None:
        """Re-apply the mirror on top of the merge result"""
        changed = _split_z((await self._git(
            repo_dir, "diff", "--name-only", "-z", "--no-renames", "HEAD", mirror_tree
        )).stdout)
        paths = list(dict.fromkeys(changed + unmerged))
        if not paths:
            return

        in_mirror = set(_split_z((await self._git(
            repo_dir, "ls-tree", "-r", "--name-only", "-z", mirror_tree
        )).stdout))
        take = [p for p in paths if p in in_mirror]
        drop = [p for p in paths if p not in in_mirror]

        for batch in _batches(take):
            await self._git(repo_dir, "checkout", mirror_tree, "--", *batch, what="checkout of mirrored files")
        for batch in _batches(drop):
            await self._git(repo_dir, "rm", "-q", "-r", "-f", "--ignore-unmatch", "--", *batch)

        self.logger.debug(f"Applied mirror: {len(take)} kept, {len(drop)} removed")

    async def _summarize(self, repo_dir: Path) -> ChangeSummary:
        stat = await self._git(repo_dir, "diff", "--cached", "--stat")
        names = await self._git(repo_dir, "diff", "--cached", "--name-only", "-z")
        return build_change_summary(
            stat.stdout.splitlines(),
            len(_split_z(names.stdout)),
            self.config.summary_max_entries,
        )
