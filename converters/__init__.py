"""Converters package: reference parsing, link resolution and HTML to Markdown."""

from .html_converter import HtmlToMarkdown, build_section_index, convert_html
from .link_parser import format_link, parse_references, sanitize_filename
from .link_resolver import LinkResolver

__all__ = [
    'HtmlToMarkdown',
    'LinkResolver',
    'build_section_index',
    'convert_html',
    'format_link',
    'parse_references',
    'sanitize_filename'
]
