"""Hierarchy traversal: walks containers, converts documents and writes index files."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from config_loader import ExportOptions
from converters.link_parser import format_link, join_path, sanitize_filename
from exporters.archive import MarkdownArchive
from exporters.context import ExportContext
from exporters.documents import convert_document
from exporters.errors import TemplateRenderError
from exporters.frontmatter import ITEM_BREAK, table_of_contents
from logger import log_section
from models import DocumentIndex, NodeKind, SourceNode

logger = logging.getLogger('vtt_markdown_export.exporters.traversal')

TOP_PATH = ""
ROOT_SORT = 101

# Ancestors that contribute a directory level to a document's path
PATH_KINDS = (NodeKind.FOLDER, NodeKind.COLLECTION_GROUP)


def folder_path(node: SourceNode, stop: Optional[SourceNode] = None) -> str:
    """Archive directory for a node, built from its folder ancestors."""
    names: List[str] = []
    parent = node.parent
    while parent is not None and parent is not stop and parent.kind in PATH_KINDS:
        names.append(sanitize_filename(parent.name))
        parent = parent.parent
    return '/'.join(reversed(names))


def export_document(ctx: ExportContext, path: str, doc: SourceNode, sort: int) -> Optional[str]:
    """
    Convert one document, containing any failure to that document.

    Returns:
        Path stem of the document's main file, or None when nothing was written
    """
    try:
        stem = convert_document(ctx, path, doc, sort)
    except TemplateRenderError:
        raise
    except Exception as e:
        ctx.stats['documents_failed'] += 1
        logger.error(f"Failed to export {doc.document_name} '{doc.name}' ({doc.id}): {e}", exc_info=True)
        return None

    if stem:
        ctx.stats['documents_exported'] += 1
    return stem


def export_container(ctx: ExportContext, path: str, container: SourceNode, sort: int) -> bool:
    """
    Export a folder-like node and everything beneath it.

    Child containers come first, then documents in sort order. An index file
    listing both groups is written unless the container produced nothing.

    Args:
        ctx: ExportContext of the current run
        path: Archive directory the container lives in
        container: Folder, collection or collection group
        sort: Sort counter of the container's index file

    Returns:
        True if an index file was written
    """
    subpath = join_path(path, sanitize_filename(container.name))
    subsort = sort * 10
    logger.debug(f"Exporting container '{container.name}' into '{subpath}'")

    folder_links: List[str] = []
    for child in container.containers():
        subsort += 1
        if export_container(ctx, subpath, child, subsort):
            child_index = join_path(join_path(subpath, sanitize_filename(child.name)), ctx.resolver.doc_filename(child))
            folder_links.append(format_link(child_index, child.name))

    document_links: List[str] = []
    for doc in container.documents():
        subsort += 1
        stem = export_document(ctx, subpath, doc, subsort)
        if stem:
            document_links.append(format_link(f"./{stem}", doc.name))

    entries = folder_links + ([ITEM_BREAK] if folder_links and document_links else []) + document_links
    if not entries:
        logger.info(f"Container '{container.name}' produced no output")
        return False

    ctx.archive.put_file(
        join_path(subpath, f"{ctx.resolver.doc_filename(container)}.md"),
        table_of_contents(container.name, entries, sort)
    )
    ctx.stats['index_files'] += 1
    return True


def _collections_within(group: SourceNode) -> List[SourceNode]:
    found: List[SourceNode] = []
    for child in group.containers():
        if child.kind == NodeKind.COLLECTION:
            found.append(child)
        elif child.kind == NodeKind.COLLECTION_GROUP:
            found.extend(_collections_within(child))
    return found


def _export_root(ctx: ExportContext, root: SourceNode) -> None:
    sort = ROOT_SORT

    if root.kind in (NodeKind.FOLDER, NodeKind.COLLECTION):
        export_container(ctx, TOP_PATH, root, sort)
    elif root.kind == NodeKind.COLLECTION_GROUP:
        for collection in _collections_within(root):
            export_container(ctx, folder_path(collection, stop=root), collection, sort)
            sort += 1
    elif root.kind == NodeKind.DIRECTORY:
        for doc in root.entries:
            export_document(ctx, folder_path(doc), doc, sort)
            sort += 1
    elif root.kind == NodeKind.CHAT_LOG:
        export_document(ctx, sanitize_filename(root.name), root, sort)
    else:
        export_document(ctx, TOP_PATH, root, sort)


def build_archive(
    root: SourceNode,
    options: ExportOptions,
    index: Optional[DocumentIndex] = None,
    notify: Optional[Callable[[str], None]] = None,
    ctx: Optional[ExportContext] = None
) -> MarkdownArchive:
    """
    Export a hierarchy into an in-memory archive.

    Args:
        root: Node the user asked to export
        options: Export options
        index: Identity index covering every node links may point at
        notify: Callback for messages meant for the user
        ctx: Pre-built context (tests inject fakes through it)

    Returns:
        The archive, with every asset payload written

    Raises:
        TemplateRenderError: If a user template fails
    """
    if index is None:
        index = DocumentIndex()
        index.register(root)
    if ctx is None:
        ctx = ExportContext(options, index, notify=notify)
    ctx.templates.clear_cache()

    log_section(f"Exporting {root.name}")
    try:
        _export_root(ctx, root)
    except TemplateRenderError:
        ctx.assets.close()
        raise

    asset_stats = ctx.assets.collect(ctx.archive)
    logger.info(
        f"Exported {ctx.stats['documents_exported']} documents "
        f"({ctx.stats['documents_failed']} failed), {ctx.stats['index_files']} index files, "
        f"{asset_stats['written']} assets ({asset_stats['empty']} empty)"
    )
    return ctx.archive


def export_hierarchy(
    root: SourceNode,
    archive_name: str,
    config: Union[ExportOptions, Dict[str, Any]],
    index: Optional[DocumentIndex] = None,
    notify: Optional[Callable[[str], None]] = None
) -> Path:
    """
    Export a hierarchy and save it as `<archive_name>.zip` in the output directory.

    Args:
        root: Node the user asked to export
        archive_name: Archive file name without extension
        config: ExportOptions, or a configuration dictionary
        index: Identity index (built from `root` when omitted)
        notify: Callback for messages meant for the user

    Returns:
        Path of the saved archive
    """
    options = config if isinstance(config, ExportOptions) else ExportOptions.from_config(config)
    archive = build_archive(root, options, index=index, notify=notify)
    return archive.save(options.output_directory, archive_name)


__all__ = [
    'TOP_PATH',
    'ROOT_SORT',
    'folder_path',
    'export_document',
    'export_container',
    'build_archive',
    'export_hierarchy',
]
