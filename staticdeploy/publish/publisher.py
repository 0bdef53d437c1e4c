"""
Pull-request publication: create or reuse, retitle, label.
"""
import asyncio
import logging
from typing import Callable, Optional

import aiohttp

from ..config.deploy_config import GitHubConfig
from ..core.enums import ConnectionStatus
from ..core.errors import PublicationFailure
from ..core.models import ConnectionCheck, PullRequestRef
from .github_client import GitHubClient


PR_BODY_TEMPLATE = (
    "Automated deployment from {source_url}\n\n"
    "## Changes\n```\n{summary}\n```\n\n"
    "{file_count} files changed.\n\n"
    "This PR will be automatically merged by GitHub Actions."
)


def build_pr_body(source_url: str, summary: Optional[str], file_count: int) -> str:
    return PR_BODY_TEMPLATE.format(
        source_url=source_url,
        summary=summary or "No summary available",
        file_count=file_count,
    )


class PullRequestPublisher:
    """Opens or updates the staging -> production pull request."""

    def __init__(self, config: GitHubConfig, client_factory: Optional[Callable[[], GitHubClient]] = None):
        self.config = config
        self.client_factory = client_factory or (lambda: GitHubClient(config))
        self.logger = logging.getLogger(__name__)

    async def publish(self, title: str, body: str, head: str, base: str, label: Optional[str] = None) -> PullRequestRef:
        """
        Create the pull request, or reuse the open one for the same branches.

        Raises:
            PublicationFailure: On any API error other than "already exists"
        """
        if not self.config.token or not self.config.repo:
            raise PublicationFailure("GitHub token and repository must be configured")

        self.logger.info("Creating pull request...")
        async with self.client_factory() as client:
            try:
                ref = await self._create_or_reuse(client, title, body, head, base)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise PublicationFailure(f"GitHub request failed: {e}") from e

            # Retitle and label are best effort once the PR exists
            if ref.existing:
                try:
                    patched = await client.update_pull_title(ref.number, title)
                    if patched.status != 200:
                        self.logger.warning(f"Could not update title of PR #{ref.number}: HTTP {patched.status}")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    self.logger.warning(f"Could not update title of PR #{ref.number}: {e}")

            if label:
                try:
                    labelled = await client.add_labels(ref.number, [label])
                    if labelled.status != 200:
                        self.logger.warning(f"Could not add label '{label}' to PR #{ref.number}: HTTP {labelled.status}")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    self.logger.warning(f"Could not add label '{label}' to PR #{ref.number}: {e}")

        action = "updated" if ref.existing else "created"
        self.logger.info(f"Pull request {action}: {ref.html_url}")
        return ref

    async def _create_or_reuse(self, client: GitHubClient, title: str, body: str, head: str, base: str) -> PullRequestRef:
        created = await client.create_pull(title, body, head, base)
        if created.status == 201:
            return PullRequestRef(number=created.body['number'], html_url=created.body['html_url'])

        if created.status == 422 and any('already exists' in m for m in created.error_messages()):
            found = await client.list_open_pulls(head, base)
            if found.status == 200 and isinstance(found.body, list) and found.body:
                pull = found.body[0]
                return PullRequestRef(number=pull['number'], html_url=pull['html_url'], existing=True)
            raise PublicationFailure("No existing PR found", status=found.status)

        raise PublicationFailure(created.describe(), status=created.status)

    async def test_connection(self) -> ConnectionCheck:
        """Check repository access with the configured token"""
        if not self.config.token or not self.config.repo:
            return ConnectionCheck(ConnectionStatus.NOT_CONFIGURED, "Token and repository must be configured.")

        try:
            async with self.client_factory() as client:
                response = await client.get_repo()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return ConnectionCheck(ConnectionStatus.UNEXPECTED, f"Request failed: {e}")

        if response.status == 200 and isinstance(response.body, dict):
            visibility = 'private' if response.body.get('private') else 'public'
            return ConnectionCheck(
                ConnectionStatus.OK,
                f"Connected to {response.body.get('full_name', self.config.repo)} ({visibility})"
            )
        if response.status == 401:
            return ConnectionCheck(ConnectionStatus.AUTH_FAILURE, "Authentication failed. Check the token.")
        if response.status == 404:
            return ConnectionCheck(
                ConnectionStatus.NOT_FOUND,
                "Repository not found. Check owner/repo format and token permissions."
            )
        return ConnectionCheck(ConnectionStatus.UNEXPECTED, f"Unexpected response ({response.status})")
