"""Per-run export state shared by every converter."""

import logging
from typing import Callable, Dict, Optional

from config_loader import ExportOptions
from converters.html_converter import HtmlToMarkdown
from converters.link_resolver import LinkResolver
from exporters.archive import MarkdownArchive
from exporters.asset_bundler import AssetBundler
from exporters.template_renderer import TemplateRenderer
from models import DocumentIndex

logger = logging.getLogger('vtt_markdown_export.exporters.context')


def _log_notification(message: str) -> None:
    logger.warning(message)


class ExportContext:
    """
    Everything one export run needs: options, the identity index, the archive
    being built, the asset bundler, templates and a user notification hook.

    A new context is created for every run, so no state leaks between runs.
    """

    def __init__(
        self,
        options: ExportOptions,
        index: DocumentIndex,
        archive: Optional[MarkdownArchive] = None,
        assets: Optional[AssetBundler] = None,
        templates: Optional[TemplateRenderer] = None,
        notify: Optional[Callable[[str], None]] = None
    ):
        self.options = options
        self.index = index
        self.archive = archive if archive is not None else MarkdownArchive()
        self.assets = assets if assets is not None else AssetBundler(options)
        self.templates = templates if templates is not None else TemplateRenderer(options)
        self.notify = notify or _log_notification
        self.resolver = LinkResolver(self)
        self._html_converter: Optional[HtmlToMarkdown] = None

        self.stats: Dict[str, int] = {
            'documents_exported': 0,
            'documents_failed': 0,
            'index_files': 0
        }

    @property
    def html_converter(self) -> HtmlToMarkdown:
        """Markdown converter, created on first use."""
        if self._html_converter is None:
            self._html_converter = HtmlToMarkdown()
        return self._html_converter


__all__ = ['ExportContext']
