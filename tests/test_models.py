"""Tests for source nodes, identities and snapshot loading."""

import unittest

import pytest

from models import (
    CanvasDocument,
    Collection,
    CompoundDocument,
    DocumentIndex,
    Folder,
    GenericDocument,
    SourceFormatError,
    TableResult,
    TabularDocument,
    UnresolvableReferenceError,
    load_source,
    node_from_dict,
    parse_identity,
)


class TestParseIdentity(unittest.TestCase):
    def test_world_document(self):
        parts = parse_identity('JournalEntry.abc.JournalEntryPage.p1')
        self.assertIsNone(parts.collection_id)
        self.assertEqual(parts.primary, 'JournalEntry.abc')
        self.assertEqual(parts.embedded, ('JournalEntryPage', 'p1'))

    def test_collection_document(self):
        parts = parse_identity('Compendium.world.monsters.Actor.a1.Item.i1')
        self.assertEqual(parts.collection_id, 'world.monsters')
        self.assertEqual(parts.primary, 'Compendium.world.monsters.Actor.a1')
        self.assertEqual(parts.document_type, 'Actor')

    def test_legacy_collection_document(self):
        parts = parse_identity('Compendium.world.monsters.a1')
        self.assertIsNone(parts.document_type)
        self.assertEqual(parts.document_id, 'a1')

    def test_malformed(self):
        with self.assertRaises(ValueError):
            parse_identity('Compendium.world')
        with self.assertRaises(ValueError):
            parse_identity('lonely')


class TestSourceNode(unittest.TestCase):
    def test_documents_sorted_stably_and_containers_in_order(self):
        root = Folder(id='Folder.r', name='Root')
        for doc_id, sort in (('Item.b', 5), ('Item.a', 1), ('Item.c', 5)):
            root.add_child(GenericDocument(id=doc_id, name=doc_id, sort=sort))
        root.add_child(Folder(id='Folder.z', name='Z'))
        root.add_child(Folder(id='Folder.y', name='Y'))

        self.assertEqual([d.id for d in root.documents()], ['Item.a', 'Item.b', 'Item.c'])
        self.assertEqual([c.name for c in root.containers()], ['Z', 'Y'])
        self.assertIs(root.children[0].parent, root)

    def test_get_property(self):
        doc = GenericDocument(id='Actor.a', name='A', fields={'system': {'details': {'biography': {'value': 'Bio'}}}})
        self.assertEqual(doc.get_property('system.details.biography.value'), 'Bio')
        self.assertIsNone(doc.get_property('system.description.value'))

    def test_table_result_text(self):
        self.assertEqual(TableResult(range=(1, 1), text='Gold').chat_text, 'Gold')
        self.assertEqual(
            TableResult((1, 1), 'Orc', 'document', 'Actor', 'o1').chat_text, '@Actor[o1]{Orc}'
        )
        self.assertEqual(
            TableResult((1, 1), 'Orc', 'pack', 'world.monsters', 'o1').chat_text,
            '@Compendium[world.monsters.o1]{Orc}'
        )


class TestDocumentIndex(unittest.TestCase):
    def setUp(self):
        self.root = Folder(id='Folder.r', name='Root')
        self.pack = Collection(id='Compendium.world.monsters', name='Monsters')
        self.pack.index.append(GenericDocument(id='Compendium.world.monsters.Actor.a1', name='Goblin'))
        self.root.add_child(self.pack)
        self.index = DocumentIndex()
        self.index.register(self.root)

    def test_unknown_identity(self):
        self.assertIsNone(self.index.resolve('JournalEntry.nope'))
        self.assertIsNone(self.index.resolve('not-an-identity'))

    def test_indexed_entry_resolves(self):
        self.assertEqual(self.index.resolve('Compendium.world.monsters.Actor.a1').name, 'Goblin')

    def test_embedded_in_indexed_entry_needs_async_load(self):
        with self.assertRaises(UnresolvableReferenceError):
            self.index.resolve('Compendium.world.monsters.Actor.a1.Item.claw')

    def test_parent_of(self):
        collection, parent = self.index.parent_of('Compendium.world.monsters.Actor.a1.Item.claw')
        self.assertIs(collection, self.pack)
        self.assertEqual(parent.name, 'Goblin')


class TestSnapshotLoading:
    def test_nested_snapshot(self):
        root, index = load_source({
            'kind': 'Folder', 'id': 'Folder.r', 'name': 'Root',
            'children': [
                {
                    'kind': 'CompoundDocument', 'id': 'JournalEntry.j', 'name': 'Lore',
                    'pages': [{
                        'id': 'JournalEntry.j.JournalEntryPage.p', 'name': 'Lore', 'type': 'text',
                        'title': {'level': 2, 'show': False},
                        'text': {'format': 1, 'content': '<p>x</p>'},
                    }],
                },
                {
                    'kind': 'TabularDocument', 'id': 'RollTable.t', 'name': 'Loot', 'formula': '1d4',
                    'results': [{'range': [1, 4], 'text': 'Gold'}],
                },
                {
                    'kind': 'CanvasDocument', 'id': 'Scene.s', 'name': 'Keep',
                    'dimensions': {'x': 10, 'y': 20, 'width': 100, 'height': 50},
                    'grid': {'distance': 5, 'size': 50, 'units': 'm'},
                    'notes': [{'x': 1, 'y': 2, 'label': 'Door', 'entryId': 'JournalEntry.j'}],
                },
                {'id': 'Item.i', 'name': 'Sword', 'type': 'weapon', 'data': {'system': {'weight': 3}}},
            ],
        })

        journal = index.resolve('JournalEntry.j')
        assert isinstance(journal, CompoundDocument)
        page = index.resolve('JournalEntry.j.JournalEntryPage.p')
        assert page.parent is journal
        assert page.title_level == 2 and page.show_title is False

        table = index.resolve('RollTable.t')
        assert isinstance(table, TabularDocument)
        assert table.results[0].range == (1, 4)

        scene = index.resolve('Scene.s')
        assert isinstance(scene, CanvasDocument)
        assert scene.geometry.bottom == 70
        assert scene.geometry.units_per_pixel == 0.1
        assert scene.notes[0].entry_id == 'JournalEntry.j'

        item = index.resolve('Item.i')
        assert item.sub_type == 'weapon'
        assert item.get_property('system.weight') == 3
        assert item.parent is root

    def test_directory_entries_follow_folder_chain(self):
        root, index = load_source({
            'kind': 'Directory', 'id': 'RollTable', 'name': 'Tables',
            'folders': [
                {'kind': 'Folder', 'id': 'Folder.a', 'name': 'Outer'},
                {'kind': 'Folder', 'id': 'Folder.b', 'name': 'Inner', 'folder': 'Folder.a'},
            ],
            'entries': [{'kind': 'TabularDocument', 'id': 'RollTable.t', 'name': 'Loot', 'folder': 'Folder.b'}],
        })

        table = root.entries[0]
        assert table.parent.name == 'Inner'
        assert table.parent.parent.name == 'Outer'
        assert index.resolve('RollTable.t') is table

    def test_unknown_kind(self):
        with pytest.raises(SourceFormatError):
            node_from_dict({'kind': 'Spaceship', 'id': 'x', 'name': 'y'})

    def test_missing_identity(self):
        with pytest.raises(SourceFormatError):
            node_from_dict({'name': 'nameless'})

    def test_bad_range(self):
        with pytest.raises(SourceFormatError):
            node_from_dict({'kind': 'TabularDocument', 'id': 't', 'name': 'T', 'results': [{'range': 'high'}]})
