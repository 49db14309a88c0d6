"""Metadata blocks and table-of-contents files."""

from typing import Iterable

from models import SourceNode

FRONTMATTER = "---\n"
SORT_DEFAULT = 100

# Width of every sort key; big enough that each nesting level sorts properly
SORT_PADDING = 10

# Separator between sub-container links and document links in a TOC
ITEM_BREAK = "ITEMS"

# Indexed by document name
DOCUMENT_ICONS = {
    'Actor': ':user:',
    'Cards': ':spade:',
    'ChatMessage': ':messages-square:',
    'Combat': ':swords:',
    'Item': ':luggage:',
    'Folder': ':folder:',
    'JournalEntry': ':book:',
    'JournalEntryPage': ':sticky-note:',
    'Playlist': ':music:',
    'RollTable': ':list:',
    'Scene': ':map:',
}
UNKNOWN_ICON = ':file-question:'


def icon_for(node: SourceNode) -> str:
    return DOCUMENT_ICONS.get(node.document_name, UNKNOWN_ICON)


def format_sort_key(sort: int) -> str:
    return str(sort).zfill(SORT_PADDING)


def _quoted(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def frontmatter(node: SourceNode, sort: int = SORT_DEFAULT, show_header: bool = True) -> str:
    """
    Metadata block prefixed to every document file.

    Args:
        node: Document the file is produced from
        sort: Integer sort counter for this file
        show_header: Follow the block with a `# <name>` heading

    Returns:
        The block, delimited by `---` lines
    """
    title = _quoted(node.name)
    header = f"\n# {node.name}\n" if show_header else ""
    return (
        FRONTMATTER +
        f'title: "{title}"\n' +
        f'icon: "{icon_for(node)}"\n' +
        f'aliases: "{title}"\n' +
        f"foundryId: {node.id}\n" +
        f'sortOrder: "{format_sort_key(sort)}"\n' +
        f"tags:\n  - {node.document_name}\n" +
        FRONTMATTER +
        header
    )


def frontmatter_folder(name: str, sort: int = SORT_DEFAULT, show_header: bool = True) -> str:
    """Metadata block for a synthesized index file (no identity, tagged as toc)."""
    title = _quoted(name)
    header = f"\n# {name}\n" if show_header else ""
    return (
        FRONTMATTER +
        f'title: "{title}"\n' +
        'icon: ":folder:"\n' +
        f'aliases: "{title}"\n' +
        f'sortOrder: "{format_sort_key(sort)}"\n' +
        'tags:\n  - "toc"\n' +
        FRONTMATTER +
        header
    )


def table_of_contents(name: str, entries: Iterable[str], sort: int = SORT_DEFAULT) -> str:
    """Index file body: one bullet per link, `---` at the ITEM_BREAK marker."""
    markdown = frontmatter_folder(name, sort) + "\n## Table of Contents\n"
    for entry in entries:
        markdown += '\n---' if entry == ITEM_BREAK else f"\n- {entry}"
    return markdown


__all__ = [
    'FRONTMATTER',
    'SORT_DEFAULT',
    'SORT_PADDING',
    'ITEM_BREAK',
    'DOCUMENT_ICONS',
    'icon_for',
    'format_sort_key',
    'frontmatter',
    'frontmatter_folder',
    'table_of_contents',
]
