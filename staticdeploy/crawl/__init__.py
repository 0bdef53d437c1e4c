"""
Site crawling capability and crawl strategies.
"""

from .base import Crawler
from .wget_crawler import WgetCrawler
from .strategies import CrawlStrategy, SelectiveCrawlStrategy, FullCrawlStrategy, run_crawl_chain

__all__ = [
    'Crawler',
    'WgetCrawler',
    'CrawlStrategy',
    'SelectiveCrawlStrategy',
    'FullCrawlStrategy',
    'run_crawl_chain',
]
