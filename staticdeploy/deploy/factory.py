"""
Wires the production components of a deploy run from a DeployConfig.
"""
from typing import List, Optional

from ..build.change_detector import ChangeDetector
from ..build.change_sources import ChangeSource, DatabaseChangeSource, RestApiChangeSource
from ..build.permalinks import PermalinkResolver
from ..build.planner import BuildPlanner
from ..config.deploy_config import DeployConfig
from ..crawl.wget_crawler import WgetCrawler
from ..datastore.mysql_datastore import MySQLDatastore
from ..monitoring.logging_collector import LoggingCollector
from ..monitoring.logs_storage import DeployLogStorage
from ..pipeline.base import MirrorPipeline
from ..pipeline.stages import build_mirror_stages
from ..publish.publisher import PullRequestPublisher
from ..vcs.git_cli import GitCli
from ..vcs.reconciler import GitReconciler
from .coordinator import DeployCoordinator


def build_change_sources(config: DeployConfig) -> List[ChangeSource]:
    """Database first, REST API as the fallback"""
    detection = config.detection
    datastore = MySQLDatastore("content", detection.database) if detection.database else None
    resolver = PermalinkResolver(
        config.site.source_url, detection.permalink_structure, detection.category_base
    )
    return [
        DatabaseChangeSource(datastore, detection, resolver),
        RestApiChangeSource(config.site.source_url, detection, timeout=config.http.timeout),
    ]


def deploy_log_storage(config: DeployConfig) -> DeployLogStorage:
    return DeployLogStorage(config.logs_dir / "deploy.log", config.storage.max_log_bytes)


def trigger_log_storage(config: DeployConfig) -> DeployLogStorage:
    return DeployLogStorage(config.logs_dir / "trigger.log", config.storage.max_log_bytes)


def build_coordinator(config: DeployConfig, log_collector: Optional[LoggingCollector] = None) -> DeployCoordinator:
    crawler = WgetCrawler(config.crawl, config.site, config.build_dir, config.wget_input_path)
    return DeployCoordinator(
        config=config,
        detector=ChangeDetector(build_change_sources(config)),
        planner=BuildPlanner(config.site.source_url),
        pipeline=MirrorPipeline(config, crawler, build_mirror_stages()),
        reconciler=GitReconciler(GitCli(config.git.binary), config.git),
        publisher=PullRequestPublisher(config.github),
        log_collector=log_collector or LoggingCollector(deploy_log_storage(config)),
    )
