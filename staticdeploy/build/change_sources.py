"""
Change sources: strategies that list content modified after a watermark.
"""
import re
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse, urlunparse

import aiohttp

from ..core.enums import StrategyStatus
from ..config.deploy_config import DetectionConfig
from ..datastore.base_datastore import BaseDatastore
from .permalinks import PermalinkResolver, ContentItem
from .watermark import format_watermark


@dataclass
class SourceResult:
    """Tagged result of one change source"""
    source: str
    status: StrategyStatus
    urls_by_kind: Dict[str, List[str]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def urls(self) -> List[str]:
        result = []
        for urls in self.urls_by_kind.values():
            result.extend(urls)
        return result

    @classmethod
    def success(cls, source: str, urls_by_kind: Dict[str, List[str]]) -> 'SourceResult':
        return cls(source=source, status=StrategyStatus.SUCCESS, urls_by_kind=urls_by_kind)

    @classmethod
    def soft_fail(cls, source: str, error: str) -> 'SourceResult':
        return cls(source=source, status=StrategyStatus.SOFT_FAIL, error=error)

    @classmethod
    def hard_fail(cls, source: str, error: str) -> 'SourceResult':
        return cls(source=source, status=StrategyStatus.HARD_FAIL, error=error)


class ChangeSource(ABC):
    """Lists public URLs of content modified after a moment"""

    name: str = "source"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def fetch_changes(self, since: datetime) -> SourceResult:
        pass


class DatabaseChangeSource(ChangeSource):
    """
    Reads the content database directly.

    Rows are published items of each tracked kind whose GMT modification
    time is strictly after the watermark, newest first.
    """

    name = "database"

    CHANGED_QUERY = """
        SELECT ID, post_name, post_type, post_date, post_parent, post_modified_gmt
        FROM {table}
        WHERE post_type = %s
        AND post_status = 'publish'
        AND post_modified_gmt > %s
        ORDER BY post_modified_gmt DESC
        LIMIT %s
    """

    PARENTS_QUERY = """
        SELECT ID, post_name, post_type, post_date, post_parent
        FROM {table}
        WHERE ID IN ({placeholders})
    """

    CATEGORY_QUERY = """
        SELECT tr.object_id, t.slug
        FROM {prefix}term_relationships tr
        JOIN {prefix}term_taxonomy tt ON tt.term_taxonomy_id = tr.term_taxonomy_id
        JOIN {prefix}terms t ON t.term_id = tt.term_id
        WHERE tt.taxonomy = 'category'
        AND tr.object_id IN ({placeholders})
        ORDER BY t.term_id
    """

    MAX_HIERARCHY_DEPTH = 32

    def __init__(
        self,
        datastore: Optional[BaseDatastore],
        config: DetectionConfig,
        resolver: PermalinkResolver,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(logger)
        self.datastore = datastore
        self.config = config
        self.resolver = resolver
        prefix = config.database.table_prefix if config.database else "wp_"
        if not re.match(r'^\w*$', prefix):
            raise ValueError(f"Invalid table prefix: {prefix!r}")
        self.table_prefix = prefix

    async def fetch_changes(self, since: datetime) -> SourceResult:
        if self.datastore is None:
            return SourceResult.soft_fail(self.name, "content database not configured")

        self.logger.info("Checking for changed content via database...")
        since_sql = format_watermark(since).replace('T', ' ')

        try:
            await self.datastore.connect()
            try:
                urls_by_kind = await self._query_changes(since_sql)
            finally:
                await self.datastore.disconnect()
        except Exception as e:
            self.logger.warning(f"Database query error: {e}")
            return SourceResult.hard_fail(self.name, f"database query error: {e}")

        counts = ", ".join(f"{len(urls)} {kind}s" for kind, urls in urls_by_kind.items())
        self.logger.info(f"Database returned {counts}")
        return SourceResult.success(self.name, urls_by_kind)

    async def _query_changes(self, since_sql: str) -> Dict[str, List[str]]:
        table = f"{self.table_prefix}posts"
        items_by_kind: Dict[str, List[ContentItem]] = {}
        for kind in self.config.content_kinds:
            rows = await self.datastore.execute_query(
                self.CHANGED_QUERY.format(table=table),
                [kind, since_sql, self.config.page_size]
            )
            items_by_kind[kind] = [self._to_item(row) for row in rows]

        all_items = [item for items in items_by_kind.values() for item in items]
        parents = await self._load_ancestors(all_items)
        if '%category%' in self.resolver.structure:
            await self._attach_categories([i for i in all_items if i.kind == 'post'])

        return {
            kind: [self.resolver.resolve(item, parents.get) for item in items]
            for kind, items in items_by_kind.items()
        }

    async def _load_ancestors(self, items: List[ContentItem]) -> Dict[int, ContentItem]:
        """Fetch every ancestor needed to build hierarchical page paths"""
        known: Dict[int, ContentItem] = {item.id: item for item in items}
        pending = {item.parent_id for item in items if item.kind == 'page' and item.parent_id}
        table = f"{self.table_prefix}posts"

        for _ in range(self.MAX_HIERARCHY_DEPTH):
            pending -= set(known)
            if not pending:
                break
            ids = sorted(pending)
            placeholders = ", ".join(["%s"] * len(ids))
            rows = await self.datastore.execute_query(
                self.PARENTS_QUERY.format(table=table, placeholders=placeholders), ids
            )
            found = [self._to_item(row) for row in rows]
            for parent in found:
                known[parent.id] = parent
            # Missing parents are dropped so the loop terminates
            pending = {p.parent_id for p in found if p.parent_id}
        return known

    async def _attach_categories(self, posts: List[ContentItem]) -> None:
        if not posts:
            return
        ids = [post.id for post in posts]
        placeholders = ", ".join(["%s"] * len(ids))
        rows = await self.datastore.execute_query(
            self.CATEGORY_QUERY.format(prefix=self.table_prefix, placeholders=placeholders), ids
        )
        first_category: Dict[int, str] = {}
        for row in rows:
            first_category.setdefault(int(row['object_id']), row['slug'])
        for post in posts:
            post.category = first_category.get(post.id)

    @staticmethod
    def _to_item(row: Dict[str, Any]) -> ContentItem:
        published = row.get('post_date')
        if isinstance(published, str):
            published = datetime.strptime(published, "%Y-%m-%d %H:%M:%S")
        return ContentItem(
            id=int(row['ID']),
            kind=row['post_type'],
            slug=row['post_name'],
            published=published or datetime(1970, 1, 1),
            parent_id=int(row.get('post_parent') or 0),
        )


def loopback_request(url: str, source_url: str) -> Tuple[str, Dict[str, str]]:
    """
    Rewrite a request aimed at the source's own host to 127.0.0.1.

    Returns the URL to request and the headers to send (Host carries the
    original name so virtual-host routing still matches).
    """
    if not source_url or not url.startswith(source_url):
        return url, {}
    parsed = urlparse(url)
    if not parsed.hostname:
        return url, {}
    netloc = "127.0.0.1" + (f":{parsed.port}" if parsed.port else "")
    return urlunparse(parsed._replace(netloc=netloc)), {'Host': parsed.netloc}


class RestApiChangeSource(ChangeSource):
    """
    Queries the content site's REST API with a modified_after filter.

    Used as a fallback when the database is unreachable.
    """

    name = "rest_api"

    def __init__(
        self,
        source_url: str,
        config: DetectionConfig,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(logger)
        self.source_url = source_url.rstrip('/')
        self.config = config
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def api_base(self) -> str:
        return f"{self.source_url}/wp-json/wp/v2"

    async def fetch_changes(self, since: datetime) -> SourceResult:
        if not self.source_url:
            return SourceResult.hard_fail(self.name, "source URL not configured")

        self.logger.info("Checking for changed content via REST API...")
        modified_after = format_watermark(since)
        urls_by_kind: Dict[str, List[str]] = {}

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            for kind in self.config.content_kinds:
                endpoint = self.config.rest_endpoints.get(kind, f"{kind}s")
                url = f"{self.api_base}/{endpoint}"
                params = {'modified_after': modified_after, 'per_page': str(self.config.page_size)}
                try:
                    status, body = await self._get_json(session, url, params)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    self.logger.warning(f"API error: {e}")
                    return SourceResult.hard_fail(self.name, f"API error: {e}")

                if status != 200:
                    self.logger.warning(f"API returned HTTP {status}")
                    return SourceResult.hard_fail(self.name, f"API returned HTTP {status} for {endpoint}")

                urls_by_kind[kind] = self._extract_links(body)

        counts = ", ".join(f"{len(urls)} {kind}s" for kind, urls in urls_by_kind.items())
        self.logger.info(f"API returned {counts}")
        return SourceResult.success(self.name, urls_by_kind)

    async def _get_json(self, session: aiohttp.ClientSession, url: str, params: Dict[str, str]) -> Tuple[int, Any]:
        headers: Dict[str, str] = {}
        if self.config.resolve_to_loopback:
            url, headers = loopback_request(url, self.source_url)

        async with session.get(url, params=params, headers=headers, ssl=False) as response:
            if response.status != 200:
                return response.status, None
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = None
            return response.status, body

    @staticmethod
    def _extract_links(body: Any) -> List[str]:
        if not isinstance(body, list):
            return []
        return [item['link'] for item in body if isinstance(item, dict) and item.get('link')]
