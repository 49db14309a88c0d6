"""Per-kind document converters."""

import copy
import json
import logging
import posixpath
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set

import yaml

from converters.html_converter import convert_html
from converters.link_parser import format_link, join_path, sanitize_filename
from exporters.errors import TemplateRenderError
from exporters.frontmatter import frontmatter
from models import (
    AudioListDocument,
    CanvasDocument,
    ChatLog,
    CompoundDocument,
    JournalPage,
    NodeKind,
    SceneGeometry,
    SourceNode,
    TabularDocument,
    UnresolvableReferenceError,
)

logger = logging.getLogger('vtt_markdown_export.exporters.documents')

EOL = "\n"
MARKER = "```"
THUMBNAIL_SIZE = "150"
NOT_LINKED = "Not Linked"
MESSAGE_SEPARATOR = "\n\n---------------------------\n\n"

# Rich text fields checked in order; the first non-empty one is exported
DESCRIPTION_FIELDS = (
    'system.details.biography.value',
    'system.details.publicNotes',
    'system.description.value',
)

# Bookkeeping fields removed from the structured dump
STRIPPED_FIELDS = ('prototypeToken', '_id', '_stats', 'folder', 'sort', 'ownership')

MEDIA_PAGE_TYPES = ('image', 'pdf', 'video')


def write_note(ctx, path: str, stem: str, markdown: str) -> None:
    ctx.archive.put_file(join_path(path, f"{stem}.md"), markdown)


def claim_filename(ctx, path: str, stem: str, reserved: Optional[Set[str]] = None) -> str:
    """
    First free file stem under `path`: `stem`, then `stem 1`, `stem 2`, ...

    Args:
        ctx: ExportContext of the current run
        path: Directory inside the archive
        stem: Preferred stem
        reserved: Paths already promised to files not yet written

    Returns:
        A stem whose `.md` file does not exist yet
    """
    reserved = reserved or set()
    candidate = stem
    counter = 1
    while True:
        target = join_path(path, f"{candidate}.md")
        if target not in ctx.archive and target not in reserved:
            return candidate
        candidate = f"{stem} {counter}"
        counter += 1


def claim_directory(ctx, path: str, name: str) -> str:
    """First sub-directory name under `path` that holds no files yet."""
    candidate = name
    counter = 1
    while ctx.archive.has_directory(join_path(path, candidate)):
        candidate = f"{name} {counter}"
        counter += 1
    return candidate


def convert_page(ctx, page: JournalPage) -> Optional[str]:
    """Body of a single page, or None when the page has nothing to export."""
    if page.page_type == 'text':
        if page.text_format == JournalPage.HTML:
            return convert_html(ctx, page, page.content or '')
        if page.text_format == JournalPage.MARKDOWN:
            return page.markdown
        logger.warning(f"Unknown text format {page.text_format} on page '{page.name}' ({page.id})")
        return None

    if page.page_type in MEDIA_PAGE_TYPES:
        markdown = None
        if page.src:
            markdown = ctx.assets.embed(page.src) + EOL
        if page.caption:
            markdown = (markdown or '') + EOL + page.caption + EOL
        return markdown

    logger.debug(f"Skipping page '{page.name}' with unsupported type '{page.page_type}'")
    return None


def convert_compound(ctx, path: str, journal: CompoundDocument, sort: int) -> Optional[str]:
    """
    Journal entry: one file for a single page, otherwise a sub-folder with an
    index file plus one file per page.
    """
    resolver = ctx.resolver
    pages = journal.sorted_pages()
    if not pages:
        logger.info(f"Journal '{journal.name}' has no pages")
        return None

    if len(pages) == 1:
        page = pages[0]
        body = convert_page(ctx, page)
        if not body:
            return None
        stem = claim_filename(ctx, path, resolver.note_filename(page))
        write_note(ctx, path, stem, frontmatter(page, sort, page.show_title) + body)
        return stem

    base_folder = resolver.doc_filename(journal) if ctx.options.folder_names_as_uuid else sanitize_filename(journal.name)
    folder = claim_directory(ctx, path, base_folder)
    subpath = join_path(path, folder)
    index_stem = resolver.doc_filename(journal)
    if index_stem == base_folder:
        index_stem = folder

    markdown = frontmatter(journal, sort)
    landing = next((page for page in pages if page.name == journal.name), None)
    if landing is not None:
        markdown += EOL + (convert_page(ctx, landing) or '') + "\n\n---\n"
    markdown += "\n## Table of Contents\n"

    # Names are fixed before any page is written so the listing matches the files
    reserved = {join_path(subpath, f"{index_stem}.md")}
    planned = []
    for page in pages:
        if page is landing:
            continue
        stem = claim_filename(ctx, subpath, resolver.doc_filename(page), reserved)
        reserved.add(join_path(subpath, f"{stem}.md"))
        planned.append((page, stem))
        indent = '  ' * max(page.title_level - 1, 0)
        markdown += f"\n{indent}- {format_link(stem, page.name)}"

    write_note(ctx, subpath, index_stem, markdown)

    subsort = sort * 10
    for page, stem in planned:
        body = convert_page(ctx, page)
        if body:
            write_note(ctx, subpath, stem, frontmatter(page, subsort, page.show_title) + body)
        subsort += 1

    return f"{folder}/{index_stem}"


def format_range(low: int, high: int) -> str:
    return str(low) if low == high else f"{low}-{high}"


def convert_tabular(ctx, path: str, table: TabularDocument, sort: int) -> str:
    markdown = frontmatter(table, sort)
    if table.description:
        markdown += table.description + "\n\n"

    markdown += f"| {table.formula or 'Roll'} | result |\n|------|--------|\n"
    for result in table.results:
        text = ctx.resolver.rewrite(result.chat_text, table).replace('|', '\\|')
        markdown += f"| {format_range(*result.range)} | {text} |\n"

    stem = claim_filename(ctx, path, ctx.resolver.doc_filename(table))
    write_note(ctx, path, stem, markdown)
    return stem


def format_number(value: Any) -> str:
    """Print floats without a trailing '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class SceneProjection:
    """Maps scene pixels onto the map widget's unit grid (y axis flipped)."""

    def __init__(self, geometry: SceneGeometry):
        self.geometry = geometry
        self.units_per_pixel = geometry.units_per_pixel

    def scale(self, value: float) -> Any:
        return value * self.units_per_pixel

    def point(self, y: float, x: float) -> str:
        row = self.scale(self.geometry.bottom - y)
        col = self.scale(x - self.geometry.left)
        return f"{format_number(row)}, {format_number(col)}"


def convert_canvas(ctx, path: str, scene: CanvasDocument, sort: int) -> Optional[str]:
    """Scene as an interactive map block with image overlays and note markers."""
    if not ctx.options.leaflet_scenes:
        return convert_generic(ctx, path, scene, sort)
    if scene.geometry is None:
        logger.warning(f"Scene '{scene.name}' has no dimensions; exporting its data instead")
        return convert_generic(ctx, path, scene, sort)

    geometry = scene.geometry
    projection = SceneProjection(geometry)
    height = format_number(projection.scale(geometry.height))
    width = format_number(projection.scale(geometry.width))

    markdown = frontmatter(scene, sort) + "\n```leaflet\n"
    markdown += f"id: {scene.id}\n"
    markdown += f"bounds:\n    - [0, 0]\n    - [{height}, {width}]\n"
    markdown += "defaultZoom: 2\n"
    markdown += f"lat: {format_number(projection.scale(geometry.height / 2))}\n"
    markdown += f"long: {format_number(projection.scale(geometry.width / 2))}\n"
    markdown += "height: 100%\n"
    markdown += "draw: false\n"
    markdown += f"unit: {geometry.grid_units}\n"
    markdown += "showAllMarkers: true\n"
    markdown += "preserveAspect: true\n"
    if scene.background:
        markdown += f"image: {ctx.assets.embed(scene.background, embed=False)}\n"

    overlays = []
    if scene.foreground:
        link = ctx.assets.embed(scene.foreground, 'Foreground', embed=False)
        overlays.append(f"{link}, [0, 0], [{height}, {width}]")
    for tile in scene.tiles:
        link = ctx.assets.embed(tile.src, posixpath.basename(tile.src), embed=False)
        overlays.append(
            f"{link}, [{projection.point(tile.y + tile.height - 1, tile.x)}], "
            f"[{projection.point(tile.y, tile.x + tile.width - 1)}]"
        )
    if overlays:
        markdown += "imageOverlay:\n" + "".join(f"    - [ {layer} ]\n" for layer in overlays)

    for note in scene.notes:
        linkfile = NOT_LINKED
        target = note.page_id or note.entry_id
        if target:
            try:
                linkdoc = ctx.index.resolve(target)
            except UnresolvableReferenceError:
                linkdoc = None
            if linkdoc is not None:
                linkfile = ctx.resolver.note_filename(linkdoc)
        label = (note.label or '').replace(':', '_')
        markdown += f"marker: default, {projection.point(note.y, note.x)}, {format_link(linkfile, label)}\n"

    markdown += MARKER + EOL

    stem = claim_filename(ctx, path, ctx.resolver.doc_filename(scene))
    write_note(ctx, path, stem, markdown)
    return stem


def convert_audio_list(ctx, path: str, playlist: AudioListDocument, sort: int) -> str:
    markdown = frontmatter(playlist, sort)
    if playlist.description:
        markdown += playlist.description + EOL + EOL

    for sound_id in playlist.playback_order:
        sound = playlist.sounds.get(sound_id)
        if sound is None:
            logger.warning(f"Playlist '{playlist.name}' lists unknown sound '{sound_id}'")
            continue
        markdown += f"#### {sound.name}{EOL}"
        if sound.description:
            markdown += sound.description + EOL
        markdown += ctx.assets.embed(sound.path) + EOL

    stem = claim_filename(ctx, path, ctx.resolver.doc_filename(playlist))
    write_note(ctx, path, stem, markdown)
    return stem


def export_data(doc: SourceNode) -> Dict[str, Any]:
    """Document data as it is dumped, minus bookkeeping fields."""
    data: Dict[str, Any] = {'name': doc.name}
    if doc.sub_type:
        data['type'] = doc.sub_type
    for key, value in copy.deepcopy(doc.fields).items():
        if key not in STRIPPED_FIELDS:
            data[key] = value
    return data


def dump_data(data: Dict[str, Any], dump_format: str) -> Optional[str]:
    if dump_format == 'YAML':
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    if dump_format == 'JSON':
        return json.dumps(data, indent=2, ensure_ascii=False) + EOL
    logger.error(f"Unknown option for dumping objects: {dump_format}")
    return None


def document_to_dump(ctx, path: str, doc: SourceNode, sort: int) -> str:
    """Thumbnail, description and a fenced structured dump of the data."""
    markdown = frontmatter(doc, sort)

    if doc.img:
        markdown += ctx.assets.embed(doc.img, THUMBNAIL_SIZE) + EOL + EOL

    for field_path in DESCRIPTION_FIELDS:
        text = doc.get_property(field_path)
        if text:
            body = convert_html(ctx, doc, text)
            if body:
                markdown += body + EOL + EOL
            break

    dump = dump_data(export_data(doc), ctx.options.dump_format)
    if dump is not None:
        markdown += MARKER + doc.document_name + EOL + ctx.resolver.rewrite(dump, doc) + MARKER + EOL

    stem = claim_filename(ctx, path, ctx.resolver.doc_filename(doc))
    write_note(ctx, path, stem, markdown)
    return stem


def convert_generic(ctx, path: str, doc: SourceNode, sort: int) -> str:
    """Render through a configured template, else fall back to the data dump."""
    template_path = ctx.templates.template_for(doc)
    if not template_path:
        return document_to_dump(ctx, path, doc, sort)

    if doc.img:
        ctx.assets.register(doc.img)
    try:
        markdown = ctx.templates.render(template_path, doc, sort, ctx)
    except TemplateRenderError as e:
        ctx.notify(f"Export failed: {e}")
        raise

    stem = claim_filename(ctx, path, ctx.resolver.doc_filename(doc))
    write_note(ctx, path, stem, markdown)
    return stem


def convert_chat_log(ctx, path: str, chatlog: ChatLog, sort: int) -> Optional[str]:
    """All chat messages in one dated file."""
    if not chatlog.messages:
        logger.info("Chat log is empty")
        return None

    log = ""
    for message in chatlog.messages:
        when = datetime.fromtimestamp(message.timestamp / 1000).strftime('%Y-%m-%d %H:%M:%S')
        body = convert_html(ctx, chatlog, message.html) if message.html else None
        log += f"## {when}\n\n{body or message.content}{MESSAGE_SEPARATOR}"

    stem = claim_filename(ctx, path, f"log-{datetime.now().strftime('%a-%b-%d-%Y')}")
    write_note(ctx, path, stem, log)
    return stem


Converter = Callable[[Any, str, SourceNode, int], Optional[str]]

CONVERTERS: Dict[NodeKind, Converter] = {
    NodeKind.COMPOUND: convert_compound,
    NodeKind.TABULAR: convert_tabular,
    NodeKind.CANVAS: convert_canvas,
    NodeKind.AUDIO_LIST: convert_audio_list,
    NodeKind.CHAT_LOG: convert_chat_log,
}


def convert_document(ctx, path: str, doc: SourceNode, sort: int) -> Optional[str]:
    """
    Convert one document into archive files.

    Args:
        ctx: ExportContext of the current run
        path: Directory inside the archive
        doc: Document to convert
        sort: Sort counter for the document's main file

    Returns:
        Path stem of the main file relative to `path`, or None if nothing was written
    """
    handler = CONVERTERS.get(doc.kind, convert_generic)
    logger.debug(f"Converting {doc.document_name} '{doc.name}' ({doc.id}) with {handler.__name__}")
    return handler(ctx, path, doc, sort)


__all__ = [
    'CONVERTERS',
    'DESCRIPTION_FIELDS',
    'STRIPPED_FIELDS',
    'claim_filename',
    'claim_directory',
    'convert_page',
    'convert_compound',
    'convert_tabular',
    'convert_canvas',
    'convert_audio_list',
    'convert_generic',
    'convert_chat_log',
    'convert_document',
    'document_to_dump',
    'dump_data',
    'export_data',
    'format_number',
    'format_range',
    'SceneProjection',
]
