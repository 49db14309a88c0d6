"""Data models for the Markdown archive export pipeline."""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger('vtt_markdown_export.models')


class NodeKind(Enum):
    """Closed set of source node variants."""
    FOLDER = "Folder"
    COLLECTION = "Collection"
    COLLECTION_GROUP = "CollectionGroup"
    DIRECTORY = "Directory"
    COMPOUND = "CompoundDocument"
    PAGE = "Page"
    TABULAR = "TabularDocument"
    CANVAS = "CanvasDocument"
    AUDIO_LIST = "AudioListDocument"
    GENERIC = "GenericDocument"
    CHAT_LOG = "ChatLog"


CONTAINER_KINDS = frozenset({NodeKind.FOLDER, NodeKind.COLLECTION, NodeKind.COLLECTION_GROUP})


class UnresolvableReferenceError(Exception):
    """Raised when an identity exists but cannot be loaded synchronously."""

    def __init__(self, identity: str):
        super().__init__(f"Document '{identity}' is only available through an asynchronous load")
        self.identity = identity


class SourceFormatError(ValueError):
    """Raised when a source snapshot cannot be turned into nodes."""
    pass


@dataclass
class SourceNode:
    """A read-only view of a document or container from the source world."""

    kind: ClassVar[NodeKind] = NodeKind.GENERIC

    id: str
    name: str
    document_name: str = ''
    sub_type: Optional[str] = None
    sort: int = 0
    img: Optional[str] = None
    parent: Optional['SourceNode'] = field(default=None, repr=False)
    children: List['SourceNode'] = field(default_factory=list, repr=False)
    fields: Dict[str, Any] = field(default_factory=dict, repr=False)

    def add_child(self, child: 'SourceNode') -> None:
        """Append a child and point its parent back at this node."""
        child.parent = self
        self.children.append(child)

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS

    def containers(self) -> List['SourceNode']:
        """Child containers in declared order."""
        return [child for child in self.children if child.is_container]

    def documents(self) -> List['SourceNode']:
        """Leaf documents ordered by their sort field (stable on ties)."""
        docs = [child for child in self.children if not child.is_container]
        return sorted(docs, key=lambda doc: doc.sort)

    def get_property(self, path: str) -> Any:
        """Look up a dotted path inside the raw fields."""
        value: Any = self.fields
        for key in path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SourceNode):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(eq=False)
class Folder(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.FOLDER
    document_name: str = 'Folder'


@dataclass(eq=False)
class Collection(SourceNode):
    """A named collection of documents (a compendium pack)."""

    kind: ClassVar[NodeKind] = NodeKind.COLLECTION
    document_name: str = 'Compendium'
    # Documents known only by index entry; loading them is asynchronous
    index: List['SourceNode'] = field(default_factory=list, repr=False)

    @property
    def collection_id(self) -> str:
        prefix = 'Compendium.'
        return self.id[len(prefix):] if self.id.startswith(prefix) else self.id


@dataclass(eq=False)
class CollectionGroup(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.COLLECTION_GROUP
    document_name: str = 'Folder'


@dataclass(eq=False)
class Directory(SourceNode):
    """A flat sidebar listing; documents keep their own folder parents."""

    kind: ClassVar[NodeKind] = NodeKind.DIRECTORY
    document_name: str = 'Directory'
    entries: List[SourceNode] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class JournalPage(SourceNode):
    """One page of a compound document."""

    kind: ClassVar[NodeKind] = NodeKind.PAGE
    document_name: str = 'JournalEntryPage'
    page_type: str = 'text'
    text_format: int = 1
    content: Optional[str] = None
    markdown: Optional[str] = None
    src: Optional[str] = None
    caption: Optional[str] = None
    title_level: int = 1
    show_title: bool = True
    toc: Optional[Dict[str, str]] = None

    HTML: ClassVar[int] = 1
    MARKDOWN: ClassVar[int] = 2


@dataclass(eq=False)
class CompoundDocument(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.COMPOUND
    document_name: str = 'JournalEntry'
    pages: List[JournalPage] = field(default_factory=list, repr=False)

    def add_page(self, page: JournalPage) -> None:
        page.parent = self
        self.pages.append(page)

    def sorted_pages(self) -> List[JournalPage]:
        return sorted(self.pages, key=lambda page: page.sort)


@dataclass
class TableResult:
    """One row of a roll table."""

    range: Tuple[int, int]
    text: str = ''
    result_type: str = 'text'
    document_collection: Optional[str] = None
    document_id: Optional[str] = None

    @property
    def chat_text(self) -> str:
        """Rich text for the row, with document results turned into references."""
        if self.result_type == 'document' and self.document_collection and self.document_id:
            return f"@{self.document_collection}[{self.document_id}]{{{self.text}}}"
        if self.result_type == 'pack' and self.document_collection and self.document_id:
            return f"@Compendium[{self.document_collection}.{self.document_id}]{{{self.text}}}"
        return self.text


@dataclass(eq=False)
class TabularDocument(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.TABULAR
    document_name: str = 'RollTable'
    formula: Optional[str] = None
    description: Optional[str] = None
    results: List[TableResult] = field(default_factory=list, repr=False)


@dataclass
class SceneGeometry:
    """Scene rectangle (padding excluded) and grid settings, in pixels."""

    left: float
    top: float
    width: float
    height: float
    grid_distance: float = 5
    grid_size: float = 100
    grid_units: str = 'ft'

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def units_per_pixel(self) -> float:
        return self.grid_distance / self.grid_size


@dataclass
class SceneTile:
    x: float
    y: float
    width: float
    height: float
    src: str


@dataclass
class SceneNote:
    x: float
    y: float
    label: str = ''
    entry_id: Optional[str] = None
    page_id: Optional[str] = None


@dataclass(eq=False)
class CanvasDocument(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.CANVAS
    document_name: str = 'Scene'
    geometry: Optional[SceneGeometry] = None
    background: Optional[str] = None
    foreground: Optional[str] = None
    tiles: List[SceneTile] = field(default_factory=list, repr=False)
    notes: List[SceneNote] = field(default_factory=list, repr=False)


@dataclass
class PlaylistSound:
    id: str
    name: str
    path: str
    description: Optional[str] = None


@dataclass(eq=False)
class AudioListDocument(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.AUDIO_LIST
    document_name: str = 'Playlist'
    description: Optional[str] = None
    sounds: Dict[str, PlaylistSound] = field(default_factory=dict, repr=False)
    playback_order: List[str] = field(default_factory=list)


@dataclass(eq=False)
class GenericDocument(SourceNode):
    """Any other document; `fields` holds its exported data."""

    kind: ClassVar[NodeKind] = NodeKind.GENERIC
    document_name: str = 'Item'


@dataclass
class ChatMessage:
    timestamp: int
    html: str = ''
    # Plain-text export, used when the message has no rich content
    content: str = ''


@dataclass(eq=False)
class ChatLog(SourceNode):
    kind: ClassVar[NodeKind] = NodeKind.CHAT_LOG
    document_name: str = 'ChatMessage'
    messages: List[ChatMessage] = field(default_factory=list, repr=False)


@dataclass
class LinkReference:
    """One parsed `@Type[target#anchor]{label}` occurrence."""

    doc_type: str
    target: str
    anchor: Optional[str] = None
    label: Optional[str] = None
    embed: bool = False
    raw: str = ''
    start: int = 0
    end: int = 0


@dataclass
class AssetRecord:
    """A bundled file: where it came from, where it lands, and its pending bytes."""

    source_path: str
    archive_name: str
    payload: Optional['Future[bytes]'] = field(default=None, repr=False)


@dataclass
class OutputFile:
    path: str
    content: Union[str, bytes]
    is_binary: bool = False


class IdentityParts(NamedTuple):
    collection_id: Optional[str]
    primary: str
    document_type: Optional[str]
    document_id: str
    embedded: Tuple[str, ...]


def parse_identity(identity: str) -> IdentityParts:
    """
    Split a global identity into its collection, primary document and embedded path.

    Supported forms:
        Type.id[.Embedded.id...]
        Compendium.scope.pack.Type.id[.Embedded.id...]
        Compendium.scope.pack.id   (legacy, no document type)

    Raises:
        ValueError: If the identity does not have enough parts
    """
    parts = identity.split('.')
    if parts[0] == 'Compendium':
        if len(parts) < 4:
            raise ValueError(f"Malformed collection identity: {identity}")
        collection_id = f"{parts[1]}.{parts[2]}"
        if len(parts) == 4:
            return IdentityParts(collection_id, identity, None, parts[3], ())
        primary = '.'.join(parts[:5])
        return IdentityParts(collection_id, primary, parts[3], parts[4], tuple(parts[5:]))

    if len(parts) < 2:
        raise ValueError(f"Malformed identity: {identity}")
    return IdentityParts(None, '.'.join(parts[:2]), parts[0], parts[1], tuple(parts[2:]))


class DocumentIndex:
    """Synchronous identity lookup over every registered node."""

    def __init__(self) -> None:
        self.documents: Dict[str, SourceNode] = {}
        self.stubs: Dict[str, SourceNode] = {}
        self.collections: Dict[str, Collection] = {}

    def register(self, node: SourceNode) -> None:
        """Index a node and everything beneath it."""
        self.documents[node.id] = node

        if isinstance(node, Collection):
            self.collections[node.collection_id] = node
            for entry in node.index:
                entry.parent = node
                self.stubs[entry.id] = entry
        if isinstance(node, CompoundDocument):
            for page in node.pages:
                self.documents[page.id] = page
        if isinstance(node, Directory):
            for entry in node.entries:
                self.register(entry)
        for child in node.children:
            self.register(child)

    def resolve(self, identity: str, relative_to: Optional[SourceNode] = None) -> Optional[SourceNode]:
        """
        Resolve an identity to a node without any asynchronous work.

        Args:
            identity: Global identity, or a relative one starting with '.'
            relative_to: Document relative identities are resolved against

        Returns:
            The node, or None when nothing is known about the identity

        Raises:
            UnresolvableReferenceError: If the target sits inside a document
                that is only indexed, so it needs an asynchronous load
        """
        identity = self._absolute(identity, relative_to)

        if identity in self.documents:
            return self.documents[identity]
        if identity in self.stubs:
            return self.stubs[identity]

        try:
            parts = parse_identity(identity)
        except ValueError:
            logger.debug(f"Cannot parse identity '{identity}'")
            return None

        if parts.primary in self.stubs:
            raise UnresolvableReferenceError(identity)
        return None

    def parent_of(self, identity: str) -> Tuple[Optional[Collection], Optional[SourceNode]]:
        """Return the collection and primary document an identity belongs to."""
        parts = parse_identity(identity)
        collection = self.collections.get(parts.collection_id) if parts.collection_id else None
        parent = self.stubs.get(parts.primary) or self.documents.get(parts.primary)
        return collection, parent

    @staticmethod
    def _absolute(identity: str, relative_to: Optional[SourceNode]) -> str:
        if not identity.startswith('.') or relative_to is None:
            return identity
        rest = identity[1:]
        if '.' not in rest and relative_to.parent is not None and relative_to.kind == NodeKind.PAGE:
            # Sibling embedded document
            return f"{relative_to.parent.id}.{relative_to.document_name}.{rest}"
        return f"{relative_to.id}.{rest}"


def _as_range(value: Any) -> Tuple[int, int]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return int(value[0]), int(value[1])
    if isinstance(value, (int, float)):
        return int(value), int(value)
    raise SourceFormatError(f"Invalid table result range: {value!r}")


def _common(data: Dict[str, Any]) -> Dict[str, Any]:
    if 'id' not in data or 'name' not in data:
        raise SourceFormatError(f"Node is missing 'id' or 'name': {sorted(data)}")
    common = {
        'id': data['id'],
        'name': data['name'],
        'sub_type': data.get('type'),
        'sort': data.get('sort', 0),
        'img': data.get('img'),
        'fields': data.get('data', {}),
    }
    if data.get('documentName'):
        common['document_name'] = data['documentName']
    return common


def _page_from_dict(data: Dict[str, Any]) -> JournalPage:
    title = data.get('title', {})
    text = data.get('text', {})
    image = data.get('image', {})
    return JournalPage(
        **_common(data),
        page_type=data.get('type', 'text'),
        text_format=text.get('format', JournalPage.HTML),
        content=text.get('content'),
        markdown=text.get('markdown'),
        src=data.get('src'),
        caption=image.get('caption'),
        title_level=title.get('level', 1),
        show_title=title.get('show', True),
        toc=data.get('toc'),
    )


def node_from_dict(data: Dict[str, Any], parent: Optional[SourceNode] = None) -> SourceNode:
    """
    Recursively build a node (and its subtree) from a snapshot dictionary.

    Args:
        data: Dictionary with a 'kind' key naming a NodeKind value
        parent: Parent node the result is attached to

    Returns:
        The reconstructed node

    Raises:
        SourceFormatError: If the kind is unknown or required keys are missing
    """
    try:
        kind = NodeKind(data.get('kind', NodeKind.GENERIC.value))
    except ValueError:
        raise SourceFormatError(f"Unknown node kind: {data.get('kind')!r}")

    common = _common(data)

    if kind == NodeKind.FOLDER:
        node: SourceNode = Folder(**common)
    elif kind == NodeKind.COLLECTION:
        node = Collection(**common)
        for entry in data.get('index', []):
            node.index.append(GenericDocument(**_common(entry)))
    elif kind == NodeKind.COLLECTION_GROUP:
        node = CollectionGroup(**common)
    elif kind == NodeKind.DIRECTORY:
        node = Directory(**common)
    elif kind == NodeKind.COMPOUND:
        node = CompoundDocument(**common)
        for page_data in data.get('pages', []):
            node.add_page(_page_from_dict(page_data))
    elif kind == NodeKind.TABULAR:
        node = TabularDocument(
            **common,
            formula=data.get('formula'),
            description=data.get('description'),
            results=[
                TableResult(
                    range=_as_range(result.get('range')),
                    text=result.get('text', ''),
                    result_type=result.get('type', 'text'),
                    document_collection=result.get('documentCollection'),
                    document_id=result.get('documentId'),
                )
                for result in data.get('results', [])
            ],
        )
    elif kind == NodeKind.CANVAS:
        dims = data.get('dimensions', {})
        grid = data.get('grid', {})
        node = CanvasDocument(
            **common,
            geometry=SceneGeometry(
                left=dims.get('x', 0),
                top=dims.get('y', 0),
                width=dims.get('width', 0),
                height=dims.get('height', 0),
                grid_distance=grid.get('distance', 5),
                grid_size=grid.get('size', 100),
                grid_units=grid.get('units', 'ft'),
            ),
            background=data.get('background'),
            foreground=data.get('foreground'),
            tiles=[SceneTile(**tile) for tile in data.get('tiles', [])],
            notes=[
                SceneNote(
                    x=note['x'],
                    y=note['y'],
                    label=note.get('label', ''),
                    entry_id=note.get('entryId'),
                    page_id=note.get('pageId'),
                )
                for note in data.get('notes', [])
            ],
        )
    elif kind == NodeKind.AUDIO_LIST:
        sounds = {
            sound['id']: PlaylistSound(
                id=sound['id'],
                name=sound['name'],
                path=sound['path'],
                description=sound.get('description'),
            )
            for sound in data.get('sounds', [])
        }
        node = AudioListDocument(
            **common,
            description=data.get('description'),
            sounds=sounds,
            playback_order=data.get('playbackOrder', list(sounds)),
        )
    elif kind == NodeKind.CHAT_LOG:
        node = ChatLog(
            **common,
            messages=[
                ChatMessage(timestamp=m['timestamp'], html=m.get('html', ''), content=m.get('content', ''))
                for m in data.get('messages', [])
            ],
        )
    elif kind == NodeKind.PAGE:
        node = _page_from_dict(data)
    else:
        node = GenericDocument(**common)

    node.parent = parent
    for child_data in data.get('children', []):
        node.add_child(node_from_dict(child_data, parent=node))
    return node


def load_source(data: Dict[str, Any]) -> Tuple[SourceNode, DocumentIndex]:
    """
    Build a hierarchy from a snapshot and index it.

    Directory snapshots list their documents under 'entries'; each entry is
    attached to the folder named by its 'folder' key, so exported paths follow
    the folder chain even though the directory itself is flat.
    """
    if not isinstance(data, dict):
        raise SourceFormatError("Source snapshot must be a mapping")

    root = node_from_dict(data)
    if isinstance(root, Directory):
        folders: Dict[str, SourceNode] = {}
        for folder_data in data.get('folders', []):
            folder = node_from_dict(folder_data)
            folders[folder.id] = folder
        for folder_data in data.get('folders', []):
            parent_id = folder_data.get('folder')
            if parent_id:
                folders[folder_data['id']].parent = folders.get(parent_id)
        for entry_data in data.get('entries', []):
            entry = node_from_dict(entry_data)
            entry.parent = folders.get(entry_data.get('folder', ''))
            root.entries.append(entry)

    index = DocumentIndex()
    index.register(root)
    logger.debug(f"Indexed {len(index.documents)} documents and {len(index.stubs)} index entries")
    return root, index


__all__ = [
    'NodeKind',
    'CONTAINER_KINDS',
    'UnresolvableReferenceError',
    'SourceFormatError',
    'SourceNode',
    'Folder',
    'Collection',
    'CollectionGroup',
    'Directory',
    'JournalPage',
    'CompoundDocument',
    'TableResult',
    'TabularDocument',
    'SceneGeometry',
    'SceneTile',
    'SceneNote',
    'CanvasDocument',
    'PlaylistSound',
    'AudioListDocument',
    'GenericDocument',
    'ChatMessage',
    'ChatLog',
    'LinkReference',
    'AssetRecord',
    'OutputFile',
    'IdentityParts',
    'parse_identity',
    'DocumentIndex',
    'node_from_dict',
    'load_source',
]
