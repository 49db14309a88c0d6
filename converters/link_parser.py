"""Parser for the `@Type[target#anchor]{label}` cross-reference markup."""

import re
from typing import Iterator, List, Optional
from urllib.parse import urlparse

from models import LinkReference

# @Type[target#anchor]{label}: anchor and label optional
LINK_PATTERN = re.compile(r'@([A-Za-z]+)\[([^#\]]+)(?:#([^\]]+))?](?:{([^}]+)})?')

# Markdown image as produced by the HTML converter: alt text, then path
IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\(([^)]*)\)')

EMBED_PREFIX = 'inline'

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

DOCUMENT_LINK_TYPES = frozenset({
    'Actor',
    'Adventure',
    'Cards',
    'Item',
    'JournalEntry',
    'JournalEntryPage',
    'Macro',
    'Playlist',
    'PlaylistSound',
    'RollTable',
    'Scene',
})

KNOWN_LINK_TYPES = DOCUMENT_LINK_TYPES | {'Compendium', 'UUID'}


def iter_references(text: str) -> Iterator[LinkReference]:
    """Yield every reference in `text`, in order of appearance."""
    for match in LINK_PATTERN.finditer(text):
        yield reference_from_match(match)


def parse_references(text: str) -> List[LinkReference]:
    """
    Extract all cross-references from a piece of rich text.

    Args:
        text: Rich text (HTML, Markdown or a structured dump)

    Returns:
        List of LinkReference records, known and unknown types alike
    """
    return list(iter_references(text))


def reference_from_match(match: 're.Match[str]') -> LinkReference:
    doc_type, target, anchor, label = match.groups()
    embed = doc_type.startswith(EMBED_PREFIX)
    if embed:
        doc_type = doc_type[len(EMBED_PREFIX):]
    return LinkReference(
        doc_type=doc_type,
        target=target,
        anchor=anchor,
        label=label,
        embed=embed,
        raw=match.group(0),
        start=match.start(),
        end=match.end(),
    )


def is_known_type(reference: LinkReference) -> bool:
    return reference.doc_type in KNOWN_LINK_TYPES


def canonical_identity(reference: LinkReference) -> str:
    """Normalize any recognized reference type into a global identity string."""
    if reference.doc_type == 'UUID':
        return reference.target
    return f"{reference.doc_type}.{reference.target}"


def sanitize_filename(name: str) -> str:
    """Replace characters that are illegal in file names with '_'."""
    return INVALID_FILENAME_CHARS.sub('_', name)


def join_path(directory: str, filename: str) -> str:
    return f"{directory}/{filename}" if directory else filename


def is_remote(path: str) -> bool:
    """True for http(s) and protocol-relative URLs."""
    return urlparse(path).scheme in ('http', 'https') or path.startswith('//')


def is_external(path: str) -> bool:
    """True for remote URLs and inline data, which are never bundled."""
    return is_remote(path) or path.startswith('data:')


def format_link(path: str, label: Optional[str] = None, embed: bool = False) -> str:
    """
    Build a portable wiki link.

    Args:
        path: Link target
        label: Display label, dropped when equal to the path
        embed: Prefix with '!' to embed rather than cite

    Returns:
        `[[path]]`, `[[path|label]]` or the `!` embed form
    """
    body = path
    if label and label != path:
        body += f"|{label}"
    result = f"[[{body}]]"
    return "!" + result if embed else result


__all__ = [
    'LINK_PATTERN',
    'IMAGE_PATTERN',
    'DOCUMENT_LINK_TYPES',
    'KNOWN_LINK_TYPES',
    'iter_references',
    'parse_references',
    'reference_from_match',
    'is_known_type',
    'canonical_identity',
    'sanitize_filename',
    'join_path',
    'is_remote',
    'is_external',
    'format_link',
]
