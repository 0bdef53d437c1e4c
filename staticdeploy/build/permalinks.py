"""
Resolve content rows to their public URLs using a WordPress-style
permalink structure.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Callable


@dataclass
class ContentItem:
    """A published content row as read from the database"""
    id: int
    kind: str
    slug: str
    published: datetime
    parent_id: int = 0
    category: Optional[str] = None


class PermalinkResolver:
    """
    Expands permalink tokens for posts and builds hierarchical paths for pages.

    Supported tokens: %year% %monthnum% %day% %hour% %minute% %second%
    %postname% %post_id% %pagename% %category%
    """

    def __init__(self, site_url: str, structure: str, category_base: str = "category"):
        self.site_url = site_url.rstrip('/')
        self.structure = structure or ""
        self.category_base = category_base or "category"
        self.logger = logging.getLogger(__name__)

    @property
    def uses_trailing_slash(self) -> bool:
        return not self.structure or self.structure.endswith('/')

    def resolve(self, item: ContentItem, parent_lookup: Optional[Callable[[int], Optional[ContentItem]]] = None) -> str:
        """Return the public URL of a content item"""
        if item.kind == 'page':
            return self._page_url(item, parent_lookup)
        if item.kind == 'post':
            return self._post_url(item)
        return self._finish(f"{item.kind}/{item.slug}")

    def _post_url(self, item: ContentItem) -> str:
        if not self.structure:
            return f"{self.site_url}/?p={item.id}"

        published = item.published
        tokens: Dict[str, str] = {
            '%year%': f"{published.year:04d}",
            '%monthnum%': f"{published.month:02d}",
            '%day%': f"{published.day:02d}",
            '%hour%': f"{published.hour:02d}",
            '%minute%': f"{published.minute:02d}",
            '%second%': f"{published.second:02d}",
            '%postname%': item.slug,
            '%pagename%': item.slug,
            '%post_id%': str(item.id),
            '%category%': item.category or 'uncategorized',
        }
        path = self.structure
        for token, value in tokens.items():
            path = path.replace(token, value)
        return self.site_url + '/' + path.lstrip('/')

    def _page_url(self, item: ContentItem, parent_lookup) -> str:
        if not self.structure:
            return f"{self.site_url}/?page_id={item.id}"

        slugs = [item.slug]
        seen = {item.id}
        parent_id = item.parent_id
        while parent_id and parent_lookup is not None:
            if parent_id in seen:
                self.logger.warning(f"Page hierarchy loop at id {parent_id}; truncating path")
                break
            seen.add(parent_id)
            parent = parent_lookup(parent_id)
            if parent is None:
                break
            slugs.append(parent.slug)
            parent_id = parent.parent_id
        return self._finish('/'.join(reversed(slugs)))

    def _finish(self, path: str) -> str:
        url = f"{self.site_url}/{path.strip('/')}"
        return url + '/' if self.uses_trailing_slash else url
