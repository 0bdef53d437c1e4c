from .github_client import GitHubClient, ApiResponse
from .publisher import PullRequestPublisher, build_pr_body

__all__ = ['GitHubClient', 'ApiResponse', 'PullRequestPublisher', 'build_pr_body']
