"""User-supplied Jinja2 templates for actor and item documents."""

import logging
import os
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from config_loader import ExportOptions
from converters.html_converter import convert_html
from exporters.errors import TemplateRenderError
from exporters.frontmatter import format_sort_key, frontmatter
from models import SourceNode

# Document kinds that may be rendered through a template
TEMPLATE_KINDS = ('Actor', 'Item')


class TemplateRenderer:
    """
    Looks up and renders templates keyed by `<Kind>.<subtype>` or `<Kind>`.

    Compiled templates are cached per renderer; `clear_cache` must be called
    at the start of every export run so edited template files are picked up.
    """

    def __init__(self, options: ExportOptions, logger: Optional[logging.Logger] = None):
        self.templates = options.templates or {}
        self.logger = logger or logging.getLogger('vtt_markdown_export.exporters.template_renderer')
        self.env = Environment(
            loader=FileSystemLoader(options.template_directory or '.'),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False
        )
        self._cache: Dict[str, Template] = {}

    def clear_cache(self) -> None:
        self._cache.clear()
        if self.env.cache is not None:
            self.env.cache.clear()

    def template_for(self, node: SourceNode) -> Optional[str]:
        """
        Template path configured for a document, if any.

        The subtype-specific key wins over the kind-wide key.
        """
        if node.document_name not in TEMPLATE_KINDS:
            return None
        if node.sub_type:
            path = self.templates.get(f"{node.document_name}.{node.sub_type}")
            if path:
                return path
        return self.templates.get(node.document_name)

    def _load(self, template_path: str) -> Template:
        template = self._cache.get(template_path)
        if template is None:
            if os.path.isabs(template_path):
                with open(template_path, 'r', encoding='utf-8') as f:
                    template = self.env.from_string(f.read())
            else:
                template = self.env.get_template(template_path)
            self._cache[template_path] = template
            self.logger.debug(f"Compiled template {template_path}")
        return template

    def render(self, template_path: str, node: SourceNode, sort: int, ctx) -> str:
        """
        Render a document through its template.

        The template sees the document (`document`, `data`, `name`), its sort
        key, the standard frontmatter block and three helpers: `links(text)`
        rewrites references, `html(text)` converts rich text to Markdown and
        `asset(path, label)` bundles a file and returns its link.

        Raises:
            TemplateRenderError: If the template is missing or fails to render
        """
        try:
            template = self._load(template_path)
            return template.render(
                document=node,
                data=node.fields,
                name=node.name,
                sort=sort,
                sort_key=format_sort_key(sort),
                frontmatter=frontmatter(node, sort),
                links=lambda text: ctx.resolver.rewrite(text or '', node),
                html=lambda text: convert_html(ctx, node, text or '') or '',
                asset=lambda path, label=None: ctx.assets.embed(path, label),
            )
        except Exception as e:
            # Any failure inside a user template stops the export
            raise TemplateRenderError(node.name, template_path, e) from e


__all__ = ['TemplateRenderer', 'TEMPLATE_KINDS']
