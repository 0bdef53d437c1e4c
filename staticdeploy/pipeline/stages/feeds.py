from pathlib import Path
from typing import List

from lxml import etree

from ..base import MirrorStage, MirrorContext, StageResult, walk_files
from ..rewrite import AGGREGATE_FEED


FEED_INDEX = ("feed", "index.html")


def find_feed_indexes(root: Path) -> List[Path]:
    return [p for p in walk_files(root) if (p.parent.name, p.name) == FEED_INDEX]


def normalize_feed(data: bytes) -> bytes:
    """
    Set every item's guid to its link.

    Raises:
        etree.XMLSyntaxError: If the data is not well-formed XML
        ValueError: If the document has no channel
    """
    parser = etree.XMLParser(strip_cdata=False, resolve_entities=False, no_network=True)
    root = etree.fromstring(data.lstrip(), parser)
    channel = root if root.tag == "channel" else root.find("channel")
    if channel is None:
        raise ValueError("no channel element")

    for item in channel.iter("item"):
        link = item.find("link")
        guid = item.find("guid")
        if link is not None and guid is not None and link.text:
            guid.text = link.text.strip()

    encoding = root.getroottree().docinfo.encoding or "UTF-8"
    return etree.tostring(root.getroottree(), xml_declaration=True, encoding=encoding)


class FeedNormalizationStage(MirrorStage):
    """Turns each mirrored feed/index.html into an all.rss with stable guids."""

    name = "feed_normalization"

    async def execute(self, context: MirrorContext) -> StageResult:
        self.logger.info("Processing feeds...")
        created = 0
        for feed_file in find_feed_indexes(context.site_dir):
            try:
                normalized = normalize_feed(feed_file.read_bytes())
            except (etree.XMLSyntaxError, ValueError) as e:
                self.logger.debug(f"Not an RSS feed, leaving as is: {feed_file} ({e})")
                continue
            except OSError as e:
                self.logger.warning(f"could not read feed {feed_file}: {e}")
                continue

            target = feed_file.with_name(AGGREGATE_FEED)
            try:
                target.write_bytes(normalized)
            except OSError as e:
                self.logger.warning(f"could not write {target}: {e}")
                continue
            created += 1
            self.logger.info(f"Created: /{target.relative_to(context.site_dir).as_posix()}")
        return self._result(created)


class StaleFeedCleanupStage(MirrorStage):
    """Removes feed index files superseded by an aggregate feed."""

    name = "stale_feed_cleanup"

    async def execute(self, context: MirrorContext) -> StageResult:
        removed = 0
        for feed_file in find_feed_indexes(context.site_dir):
            if not feed_file.with_name(AGGREGATE_FEED).exists():
                continue
            try:
                feed_file.unlink()
                removed += 1
            except OSError as e:
                self.logger.warning(f"could not remove {feed_file}: {e}")
        return self._result(removed)
