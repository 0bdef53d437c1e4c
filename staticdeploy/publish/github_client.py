"""
Minimal GitHub REST client for pull-request publication.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .. import __version__
from ..config.deploy_config import GitHubConfig


@dataclass
class ApiResponse:
    status: int
    body: Any = None

    def error_messages(self):
        if not isinstance(self.body, dict):
            return []
        return [e.get('message', '') for e in self.body.get('errors', []) if isinstance(e, dict)]

    def describe(self) -> str:
        return f"GitHub API error ({self.status}): {json.dumps(self.body)}"


class GitHubClient:
    """
    Thin async wrapper over the GitHub REST API.

    Usage:
        async with GitHubClient(config) as client:
            response = await client.get_repo()

    No automatic retries; transport errors propagate as aiohttp.ClientError.
    """

    def __init__(self, config: GitHubConfig):
        self.config = config
        self.repo = config.repo
        self.api_base = config.api_base.rstrip('/')
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(__name__)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.config.token}",
            'Accept': 'application/vnd.github+json',
            'User-Agent': f"staticdeploy/{__version__}",
        }

    async def __aenter__(self):
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self._session = aiohttp.ClientSession(timeout=timeout, headers=self.headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session is not None:
            await self._session.close()
            self._session = None
        return False

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None
    ) -> ApiResponse:
        if self._session is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")

        url = f"{self.api_base}{endpoint}"
        self.logger.debug(f"GitHub {method} {endpoint}")
        async with self._session.request(method, url, json=payload, params=params) as response:
            text = await response.text()
            try:
                body = json.loads(text) if text else None
            except ValueError:
                body = text
            return ApiResponse(status=response.status, body=body)

    async def create_pull(self, title: str, body: str, head: str, base: str) -> ApiResponse:
        return await self.request('POST', f"/repos/{self.repo}/pulls", {
            'title': title,
            'body': body,
            'head': head,
            'base': base,
        })

    async def list_open_pulls(self, head: str, base: str) -> ApiResponse:
        return await self.request('GET', f"/repos/{self.repo}/pulls", params={
            'state': 'open',
            'head': f"{self.config.owner}:{head}",
            'base': base,
        })

    async def update_pull_title(self, number: int, title: str) -> ApiResponse:
        return await self.request('PATCH', f"/repos/{self.repo}/pulls/{number}", {'title': title})

    async def add_labels(self, number: int, labels) -> ApiResponse:
        return await self.request('POST', f"/repos/{self.repo}/issues/{number}/labels", {'labels': list(labels)})

    async def get_repo(self) -> ApiResponse:
        return await self.request('GET', f"/repos/{self.repo}")
