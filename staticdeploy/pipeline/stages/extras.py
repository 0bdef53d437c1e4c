from ..base import MirrorStage, MirrorContext, StageResult, write_text


PRODUCTION_URL_PLACEHOLDER = "{{production_url}}"


class StaticExtrasStage(MirrorStage):
    """Writes robots.txt and the optional README into the mirrored tree."""

    name = "static_extras"

    async def execute(self, context: MirrorContext) -> StageResult:
        tree = context.config.publish_tree
        written = 0
        context.site_dir.mkdir(parents=True, exist_ok=True)

        if tree.robots_txt:
            robots = tree.robots_txt.replace(PRODUCTION_URL_PLACEHOLDER, context.config.site.production_url)
            write_text(context.site_dir / "robots.txt", robots)
            written += 1
            self.logger.info("Generated robots.txt")

        if tree.readme_content:
            write_text(context.site_dir / "README.md", tree.readme_content)
            written += 1
            self.logger.info("Generated README.md")

        return self._result(written)
