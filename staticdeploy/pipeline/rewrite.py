"""
Text transforms applied to the mirrored tree.
"""
import re


AGGREGATE_FEED = "all.rss"

SINGLE_QUOTED_ATTR = re.compile(r"(\w+)='([^']*)'", re.DOTALL)
NEWLINES = re.compile(r"\r?\n|\r")
FEED_PATH = re.compile(r"/feed/(?!all\.rss)")


def swap_domain(content: str, source_domain: str, production_domain: str) -> str:
    """Rewrite protocol-relative references to the source host"""
    return content.replace(f"//{source_domain}", f"//{production_domain}")


def point_feeds_at_aggregate(content: str) -> str:
    return FEED_PATH.sub(f"/feed/{AGGREGATE_FEED}", content)


def rewrite_html(content: str, source_domain: str, production_domain: str) -> str:
    content = swap_domain(content, source_domain, production_domain)
    content = SINGLE_QUOTED_ATTR.sub(r'\1="\2"', content)
    content = content.replace(" />", ">")
    content = NEWLINES.sub("", content)
    return point_feeds_at_aggregate(content)


def rewrite_xml(content: str, source_domain: str, production_domain: str) -> str:
    # No quote or whitespace transforms here; they would break XML
    content = swap_domain(content, source_domain, production_domain)
    return point_feeds_at_aggregate(content)
