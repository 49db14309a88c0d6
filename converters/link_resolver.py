"""Rewrites cross-references and local files into portable links."""

import logging
import re
from typing import Dict, Optional

from converters.html_converter import build_section_index
from converters.link_parser import (
    IMAGE_PATTERN,
    LINK_PATTERN,
    canonical_identity,
    format_link,
    is_external,
    is_known_type,
    reference_from_match,
    sanitize_filename,
)
from models import (
    CompoundDocument,
    JournalPage,
    LinkReference,
    NodeKind,
    SourceNode,
    UnresolvableReferenceError,
)

logger = logging.getLogger('vtt_markdown_export.converters.link_resolver')


class LinkResolver:
    """
    Turns `@Type[target#anchor]{label}` references into wiki links.

    Resolution is always synchronous. A target that only exists inside an
    index-only collection falls back to a best-effort path built from its
    collection and parent names, and anything else unknown becomes a dummy
    link naming the raw identity.
    """

    def __init__(self, ctx):
        self.ctx = ctx
        self.options = ctx.options
        self.index = ctx.index
        self._sections: Dict[str, Dict[str, str]] = {}

    def doc_filename(self, node: SourceNode) -> str:
        """Base file name for a document in the active naming mode."""
        if self.options.use_uuid_for_notename:
            return node.id
        return sanitize_filename(node.name)

    def note_filename(self, node: SourceNode) -> str:
        """
        File a link to `node` should point at.

        Pages that were folded into their compound document's file (the only
        page, or the landing page whose name matches the document) map to
        that file instead.
        """
        if isinstance(node, JournalPage) and isinstance(node.parent, CompoundDocument):
            journal = node.parent
            if len(journal.pages) == 1 or node.name == journal.name:
                return self.doc_filename(journal)
        return self.doc_filename(node)

    def rewrite(self, text: str, relative_to: Optional[SourceNode] = None) -> str:
        """Rewrite references, then bundle local image references."""
        return self.rewrite_files(self.rewrite_links(text, relative_to))

    def rewrite_links(self, text: str, relative_to: Optional[SourceNode] = None) -> str:
        return LINK_PATTERN.sub(
            lambda match: self.resolve_reference(reference_from_match(match), relative_to),
            text
        )

    def rewrite_files(self, markdown: str) -> str:
        return IMAGE_PATTERN.sub(self._replace_file, markdown)

    def resolve_reference(self, reference: LinkReference, relative_to: Optional[SourceNode] = None) -> str:
        """
        Replacement text for one parsed reference.

        Args:
            reference: Parsed reference
            relative_to: Document the reference appears in

        Returns:
            A wiki link, or the raw markup for unrecognized types
        """
        if not is_known_type(reference):
            return reference.raw

        target = canonical_identity(reference)
        label = reference.label

        try:
            linkdoc = self.index.resolve(target, relative_to)
        except UnresolvableReferenceError:
            return self._parent_fallback(target, label, reference.embed)

        if linkdoc is None:
            logger.debug(f"Unresolved reference '{reference.raw}'")
            return self._dummy_link(target, label, reference.embed)

        if not label and not reference.anchor:
            label = linkdoc.name

        result = self.note_filename(linkdoc)
        # Section anchors only exist on pages
        if reference.anchor and linkdoc.kind == NodeKind.PAGE:
            heading = self.section_index(linkdoc).get(reference.anchor)
            result += f"#{heading or reference.anchor}"
            if heading and not label:
                label = heading

        return format_link(result, label, reference.embed)

    def section_index(self, node: JournalPage) -> Dict[str, str]:
        """Slug -> heading map for a page, built once per page and run."""
        if node.toc is not None:
            return node.toc
        if node.id not in self._sections:
            self._sections[node.id] = build_section_index(node.content)
        return self._sections[node.id]

    def _parent_fallback(self, target: str, label: Optional[str], embed: bool) -> str:
        """
        Path for a document inside an index-only collection.

        Only usable in name mode and with a label, since the target's own
        name is unknown without loading it.
        """
        if not self.options.use_uuid_for_notename and label:
            collection, parent = self.index.parent_of(target)
            if collection is not None and parent is not None:
                title = collection.name.replace('/', '_')
                return format_link(f"{title}/{parent.name}/{label}", label, embed)
        logger.debug(f"Reference '{target}' needs an asynchronous load; using dummy link")
        return self._dummy_link(target, label, embed)

    @staticmethod
    def _dummy_link(target: str, label: Optional[str], embed: bool) -> str:
        return format_link(target, label, embed)

    def _replace_file(self, match: 're.Match[str]') -> str:
        alt, path = match.group(1), match.group(2).strip()
        if not path or is_external(path):
            logger.info(f"Ignoring file/external URL in '{match.group(0)}'")
            return match.group(0)
        return self.ctx.assets.embed(path, alt or None, embed=True)


__all__ = ['LinkResolver']
