"""Archive export package for world documents.

This package turns a document hierarchy into a zip archive of Markdown
notes with bundled assets and generated index files.

Package Structure:
- traversal: Walks containers and dispatches documents to converters
- documents: Per-kind converters (journals, tables, scenes, playlists, data dumps)
- frontmatter: Metadata blocks and table-of-contents files
- asset_bundler: Names, deduplicates and fetches referenced files
- template_renderer: Jinja2 templates for actor and item documents
- archive: In-memory archive and zip output
- context: Per-run state shared by the converters

Configuration Referenced:
- export.use_uuid_for_notename / export.folder_names_as_uuid: Naming mode
- export.dump_format: YAML or JSON data dumps
- export.templates: Template paths keyed by document kind
- assets.*: Where and how referenced files are fetched
"""

from .archive import MarkdownArchive
from .asset_bundler import AssetBundler
from .context import ExportContext
from .errors import ExportError, TemplateRenderError
from .traversal import build_archive, export_hierarchy

__all__ = [
    'MarkdownArchive',
    'AssetBundler',
    'ExportContext',
    'ExportError',
    'TemplateRenderError',
    'build_archive',
    'export_hierarchy'
]
