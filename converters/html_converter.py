"""HTML to Markdown conversion for rich document text."""

import logging
import re
import unicodedata
from typing import Dict, Optional

from bs4 import BeautifulSoup
from markdownify import MarkdownConverter as MarkdownifyConverter

logger = logging.getLogger('vtt_markdown_export.converters.html_converter')

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']
MAX_SLUG_LENGTH = 64


class HtmlToMarkdown(MarkdownifyConverter):
    """
    markdownify converter configured for portable notes.

    ATX headings, fenced code, '-' bullets and strikethrough; pipe tables come
    from markdownify itself. Wiki-link brackets and underscores are left alone
    so rewritten references survive the conversion.
    """

    def __init__(self, **kwargs):
        markdownify_options = {
            'heading_style': 'ATX',
            'bullets': '-',
            'escape_asterisks': False,
            'escape_underscores': False,
            'escape_misc': False,
        }
        markdownify_options.update(kwargs)
        super().__init__(**markdownify_options)

    def convert_img(self, el, text, parent_tags=None, **kwargs):
        """Always emit an image, even inside headings, and drop the title."""
        alt = el.get('alt', '') or ''
        src = el.get('src', '') or ''
        return f"![{alt}]({src})"

    def convert_pre(self, el, text, parent_tags=None, **kwargs):
        """Fenced code blocks, keeping a `language-*` class when present."""
        code_el = el.find('code')
        language = ''
        if code_el:
            for cls in code_el.get('class', []):
                if cls.startswith('language-'):
                    language = cls[len('language-'):]
                    break
            code_text = code_el.get_text()
        else:
            code_text = el.get_text()
        return f"\n\n```{language}\n{code_text.strip()}\n```\n\n"

    def convert_markdown(self, html: str) -> str:
        return self._clean_markdown(self.convert(html))

    @staticmethod
    def _clean_markdown(markdown: str) -> str:
        """Strip trailing whitespace and collapse runs of blank lines."""
        lines = [line.rstrip() for line in markdown.split('\n')]
        markdown = '\n'.join(lines)
        markdown = re.sub(r'\n{3,}', '\n\n', markdown)
        return markdown.strip('\n')


def slugify(text: str) -> str:
    """Section slug: accents stripped, lower case, whitespace runs as '-'."""
    normalized = unicodedata.normalize('NFD', text)
    slug = ''.join(ch for ch in normalized if not unicodedata.combining(ch)).strip().lower()
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'["\']', '', slug)
    return slug[:MAX_SLUG_LENGTH]


def build_section_index(html: Optional[str]) -> Dict[str, str]:
    """
    Map section slugs to heading text for a page of HTML.

    Args:
        html: Page content

    Returns:
        Dictionary of slug -> heading text, in document order. Repeated
        headings get '-1', '-2', ... suffixes.
    """
    if not html:
        return {}

    soup = BeautifulSoup(html, 'lxml')
    sections: Dict[str, str] = {}
    for heading in soup.find_all(HEADING_TAGS):
        text = heading.get_text().strip()
        if not text:
            continue
        base = slugify(text)
        slug = base
        count = 1
        while slug in sections:
            slug = f"{base}-{count}"
            count += 1
        sections[slug] = text
    return sections


def convert_html(ctx, node, html: str) -> Optional[str]:
    """
    Convert one piece of rich text into Markdown.

    References are rewritten on the HTML first, then the markup is converted,
    escaped wiki-link brackets are restored, and finally local images are
    bundled as assets.

    Args:
        ctx: ExportContext of the current run
        node: Document the text belongs to (base for relative references)
        html: Rich text

    Returns:
        Markdown text, or None when the markup could not be converted
    """
    try:
        linked = ctx.resolver.rewrite_links(html, node)
        markdown = ctx.html_converter.convert_markdown(linked)
        markdown = markdown.replace('\\[\\[', '[[').replace('\\]\\]', ']]')
        return ctx.resolver.rewrite_files(markdown)
    except Exception as e:
        logger.warning(f"Failed to convert html for '{node.name}' ({node.id}): {e}")
        logger.debug(f"Unconvertible html: {html}")
        return None


__all__ = ['HtmlToMarkdown', 'slugify', 'build_section_index', 'convert_html']
