from typing import Callable, Tuple

from ..base import MirrorStage, MirrorContext, StageResult, find_files, read_text, write_text
from ..rewrite import rewrite_html, rewrite_xml


class _RewriteStage(MirrorStage):
    suffixes: Tuple[str, ...] = ()
    label = ""

    def transform(self) -> Callable[[str, str, str], str]:
        raise NotImplementedError

    async def execute(self, context: MirrorContext) -> StageResult:
        site = context.config.site
        transform = self.transform()
        self.logger.info(f"Rewriting URLs in {self.label} files...")

        count = 0
        errors = 0
        for path in find_files(context.site_dir, self.suffixes):
            try:
                original = read_text(path)
                content = transform(original, site.source_domain, site.production_domain)
                if content != original:
                    write_text(path, content)
                    count += 1
            except OSError as e:
                errors += 1
                self.logger.warning(f"could not rewrite {path}: {e}")

        self.logger.info(f"Rewrote URLs in {count} {self.label} files")
        return self._result(
            count,
            success=errors == 0,
            error=f"{errors} file(s) could not be rewritten" if errors else None,
        )


class HtmlRewriteStage(_RewriteStage):
    name = "html_rewrite"
    suffixes = (".html",)
    label = "HTML"

    def transform(self):
        return rewrite_html


class XmlRewriteStage(_RewriteStage):
    name = "xml_rewrite"
    suffixes = (".xml", ".rss")
    label = "XML/RSS"

    def transform(self):
        return rewrite_xml
