"""
Mirror pipeline stages, in execution order.
"""
from typing import List

from ..base import MirrorStage
from .crawl import CachePrimingStage, CrawlStage
from .feeds import FeedNormalizationStage, StaleFeedCleanupStage
from .rewrite import HtmlRewriteStage, XmlRewriteStage
from .extras import StaticExtrasStage
from .promotion import PromotionStage, DuplicateCleanupStage, StaleContentStage, LegacyPathStage


def build_mirror_stages() -> List[MirrorStage]:
    """The order matters: feeds are normalized before HTML rewriting touches them"""
    return [
        CachePrimingStage(),
        CrawlStage(),
        FeedNormalizationStage(),
        StaleFeedCleanupStage(),
        HtmlRewriteStage(),
        XmlRewriteStage(),
        StaticExtrasStage(),
        PromotionStage(),
        DuplicateCleanupStage(),
        StaleContentStage(),
        LegacyPathStage(),
    ]


__all__ = [
    'build_mirror_stages',
    'CachePrimingStage',
    'CrawlStage',
    'FeedNormalizationStage',
    'StaleFeedCleanupStage',
    'HtmlRewriteStage',
    'XmlRewriteStage',
    'StaticExtrasStage',
    'PromotionStage',
    'DuplicateCleanupStage',
    'StaleContentStage',
    'LegacyPathStage',
]
