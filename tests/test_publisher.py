"""
Test cases for pull-request publication and the GitHub connection check.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

import aiohttp

from staticdeploy.config.deploy_config import GitHubConfig
from staticdeploy.core.enums import ConnectionStatus
from staticdeploy.core.errors import PublicationFailure
from staticdeploy.publish.github_client import ApiResponse, GitHubClient
from staticdeploy.publish.publisher import PullRequestPublisher, build_pr_body


PR = {'number': 42, 'html_url': 'https://github.com/example/site/pull/42'}
ALREADY_EXISTS = ApiResponse(422, {
    'message': 'Validation Failed',
    'errors': [{'message': 'A pull request already exists for example:staging.'}],
})


@pytest.fixture
def github_config():
    return GitHubConfig(repo='example/site', token='test-token')


@pytest.fixture
def client():
    client = AsyncMock(spec=GitHubClient)
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    client.update_pull_title.return_value = ApiResponse(200, PR)
    client.add_labels.return_value = ApiResponse(200, [{'name': 'auto-merge'}])
    return client


@pytest.fixture
def publisher(github_config, client):
    return PullRequestPublisher(github_config, client_factory=lambda: client)


class TestPullRequestPublisher:
    """Test create-or-reuse publication"""

    @pytest.mark.asyncio
    async def test_creates_new_pull_request(self, publisher, client):
        client.create_pull.return_value = ApiResponse(201, PR)

        ref = await publisher.publish("Auto-deploy", "body", "staging", "master", label="auto-merge")

        assert ref.number == 42
        assert ref.existing is False
        client.create_pull.assert_awaited_once_with("Auto-deploy", "body", "staging", "master")
        client.update_pull_title.assert_not_awaited()
        client.add_labels.assert_awaited_once_with(42, ["auto-merge"])

    @pytest.mark.asyncio
    async def test_reuses_existing_pull_request(self, publisher, client):
        client.create_pull.return_value = ALREADY_EXISTS
        client.list_open_pulls.return_value = ApiResponse(200, [PR])

        ref = await publisher.publish("Auto-deploy 2", "body", "staging", "master", label="auto-merge")

        assert ref.number == 42
        assert ref.existing is True
        client.list_open_pulls.assert_awaited_once_with("staging", "master")
        client.update_pull_title.assert_awaited_once_with(42, "Auto-deploy 2")
        client.add_labels.assert_awaited_once_with(42, ["auto-merge"])

    @pytest.mark.asyncio
    async def test_repeated_publication_yields_same_pull_request(self, publisher, client):
        client.create_pull.side_effect = [ApiResponse(201, PR), ALREADY_EXISTS]
        client.list_open_pulls.return_value = ApiResponse(200, [PR])

        first = await publisher.publish("t1", "b", "staging", "master")
        second = await publisher.publish("t2", "b", "staging", "master")

        assert first.number == second.number
        assert first.html_url == second.html_url

    @pytest.mark.asyncio
    async def test_already_exists_but_none_found(self, publisher, client):
        client.create_pull.return_value = ALREADY_EXISTS
        client.list_open_pulls.return_value = ApiResponse(200, [])

        with pytest.raises(PublicationFailure) as exc_info:
            await publisher.publish("t", "b", "staging", "master")

        assert "No existing PR found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_api_errors_fail(self, publisher, client):
        client.create_pull.return_value = ApiResponse(403, {'message': 'Resource not accessible'})

        with pytest.raises(PublicationFailure) as exc_info:
            await publisher.publish("t", "b", "staging", "master")

        assert exc_info.value.status == 403
        assert "Resource not accessible" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_label_failure_is_only_a_warning(self, publisher, client):
        client.create_pull.return_value = ApiResponse(201, PR)
        client.add_labels.return_value = ApiResponse(404, {'message': 'Not Found'})

        ref = await publisher.publish("t", "b", "staging", "master", label="auto-merge")

        assert ref.number == 42

    @pytest.mark.asyncio
    async def test_label_transport_error_does_not_fail_publication(self, publisher, client):
        client.create_pull.return_value = ApiResponse(201, {'number': 5, 'html_url': 'https://github.com/example/site/pull/5'})
        client.add_labels.side_effect = aiohttp.ClientConnectionError("reset")

        ref = await publisher.publish("t", "b", "staging", "master", label="auto-merge")

        assert ref.number == 5
        client.add_labels.assert_awaited_once_with(5, ["auto-merge"])

    @pytest.mark.asyncio
    async def test_retitle_timeout_does_not_fail_publication(self, publisher, client):
        client.create_pull.return_value = ALREADY_EXISTS
        client.list_open_pulls.return_value = ApiResponse(200, [PR])
        client.update_pull_title.side_effect = asyncio.TimeoutError()

        ref = await publisher.publish("t", "b", "staging", "master", label="auto-merge")

        assert ref.number == 42
        assert ref.existing is True
        client.add_labels.assert_awaited_once_with(42, ["auto-merge"])

    @pytest.mark.asyncio
    async def test_transport_error_becomes_publication_failure(self, publisher, client):
        client.create_pull.side_effect = aiohttp.ClientConnectionError("connection reset")

        with pytest.raises(PublicationFailure):
            await publisher.publish("t", "b", "staging", "master")

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_any_request(self, client):
        publisher = PullRequestPublisher(GitHubConfig(repo='example/site'), client_factory=lambda: client)

        with pytest.raises(PublicationFailure):
            await publisher.publish("t", "b", "staging", "master")

        client.create_pull.assert_not_awaited()


class TestConnectionCheck:
    """Test classification of the repository access check"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        (401, ConnectionStatus.AUTH_FAILURE),
        (404, ConnectionStatus.NOT_FOUND),
        (500, ConnectionStatus.UNEXPECTED),
    ])
    async def test_error_statuses(self, publisher, client, status, expected):
        client.get_repo.return_value = ApiResponse(status, {'message': 'x'})

        check = await publisher.test_connection()

        assert check.status == expected
        assert not check.ok

    @pytest.mark.asyncio
    async def test_ok(self, publisher, client):
        client.get_repo.return_value = ApiResponse(200, {'full_name': 'example/site', 'private': True})

        check = await publisher.test_connection()

        assert check.ok
        assert check.message == "Connected to example/site (private)"

    @pytest.mark.asyncio
    async def test_not_configured(self, client):
        publisher = PullRequestPublisher(GitHubConfig(), client_factory=lambda: client)

        check = await publisher.test_connection()

        assert check.status == ConnectionStatus.NOT_CONFIGURED
        client.get_repo.assert_not_awaited()


class TestGitHubClient:
    """Client construction details"""

    def test_headers(self, github_config):
        headers = GitHubClient(github_config).headers

        assert headers['Authorization'] == "Bearer test-token"
        assert headers['Accept'] == "application/vnd.github+json"
        assert headers['User-Agent'].startswith("staticdeploy/")

    @pytest.mark.asyncio
    async def test_request_outside_context_manager(self, github_config):
        with pytest.raises(RuntimeError):
            await GitHubClient(github_config).get_repo()

    def test_owner(self, github_config):
        assert github_config.owner == "example"


def test_pr_body_includes_summary_and_count():
    body = build_pr_body("https://dev.example.com", " index.html | 2 +-", 1)

    assert "Automated deployment from https://dev.example.com" in body
    assert " index.html | 2 +-" in body
    assert "1 files changed." in body


def test_pr_body_without_summary():
    assert "No summary available" in build_pr_body("https://dev.example.com", None, 0)
