"""Tests for reference resolution and file link rewriting."""

import unittest

from config_loader import ExportOptions
from converters.html_converter import build_section_index, slugify
from models import Collection, CollectionGroup, Folder, GenericDocument

from conftest import make_context, make_journal


def build_world():
    root = Folder(id='Folder.root', name='Campaign')
    root.add_child(make_journal('JournalEntry.abc123', 'World', [('p0', 'World', '<p>Hello</p>')]))
    root.add_child(make_journal('JournalEntry.guide', 'Guide', [
        ('p1', 'Intro', '<h2>Secret Door</h2><p>Behind the shelf.</p><h2>Secret Door</h2>'),
        ('p2', 'Appendix', '<p>More</p>'),
    ]))
    return root


def build_compendium():
    group = CollectionGroup(id='Folder.packs', name='Packs')
    pack = Collection(id='Compendium.world.monsters', name='Monsters/Beasts')
    pack.index.append(GenericDocument(id='Compendium.world.monsters.Actor.a1', name='Goblin', document_name='Actor'))
    group.add_child(pack)
    return group


class TestLinkResolverNames(unittest.TestCase):
    """Resolution with document names as file names."""

    def setUp(self):
        options = ExportOptions(use_uuid_for_notename=False, folder_names_as_uuid=False, progress_bars=False)
        self.ctx = make_context(build_world(), options)
        self.resolver = self.ctx.resolver

    def tearDown(self):
        self.ctx.assets.close()

    def test_labelled_reference(self):
        result = self.resolver.rewrite_links('@JournalEntry[abc123]{Hello}')
        self.assertEqual(result, '[[World|Hello]]')

    def test_unlabelled_reference_uses_document_name(self):
        self.assertEqual(self.resolver.rewrite_links('@JournalEntry[abc123]'), '[[World]]')

    def test_embed_reference(self):
        self.assertEqual(self.resolver.rewrite_links('@inlineJournalEntry[abc123]'), '![[World]]')

    def test_unresolved_reference_becomes_dummy_link(self):
        self.assertEqual(self.resolver.rewrite_links('@JournalEntry[zzz999]'), '[[JournalEntry.zzz999]]')

    def test_unknown_type_is_left_alone(self):
        text = 'Roll @Check[dex]{Dexterity} now'
        self.assertEqual(self.resolver.rewrite_links(text), text)

    def test_anchor_maps_slug_to_heading(self):
        result = self.resolver.rewrite_links('@UUID[JournalEntry.guide.JournalEntryPage.p1#secret-door]')
        self.assertEqual(result, '[[Intro#Secret Door|Secret Door]]')

    def test_anchor_keeps_explicit_label(self):
        result = self.resolver.rewrite_links('@UUID[JournalEntry.guide.JournalEntryPage.p1#secret-door-1]{the other door}')
        self.assertEqual(result, '[[Intro#Secret Door|the other door]]')

    def test_anchor_on_non_page_is_dropped(self):
        result = self.resolver.rewrite_links('@JournalEntry[abc123#secret-door]{Hello}')
        self.assertEqual(result, '[[World|Hello]]')

    def test_unmatched_anchor_is_kept(self):
        result = self.resolver.rewrite_links('@UUID[JournalEntry.guide.JournalEntryPage.p1#nowhere]{Here}')
        self.assertEqual(result, '[[Intro#nowhere|Here]]')

    def test_single_page_maps_to_its_journal(self):
        result = self.resolver.rewrite_links('@UUID[JournalEntry.abc123.JournalEntryPage.p0]')
        self.assertEqual(result, '[[World]]')

    def test_relative_reference_to_sibling_page(self):
        intro = self.ctx.index.resolve('JournalEntry.guide.JournalEntryPage.p1')
        result = self.resolver.rewrite_links('@UUID[.p2]{see appendix}', intro)
        self.assertEqual(result, '[[Appendix|see appendix]]')

    def test_surrounding_text_is_preserved(self):
        result = self.resolver.rewrite_links('<p>Go to @JournalEntry[abc123]{the world}.</p>')
        self.assertEqual(result, '<p>Go to [[World|the world]].</p>')


class TestLinkResolverIdentities(unittest.TestCase):
    """Resolution with identities as file names."""

    def setUp(self):
        self.ctx = make_context(build_world(), ExportOptions(progress_bars=False))
        self.resolver = self.ctx.resolver

    def tearDown(self):
        self.ctx.assets.close()

    def test_labelled_reference(self):
        self.assertEqual(
            self.resolver.rewrite_links('@JournalEntry[abc123]{Hello}'),
            '[[JournalEntry.abc123|Hello]]'
        )

    def test_page_reference_uses_page_identity(self):
        self.assertEqual(
            self.resolver.rewrite_links('@UUID[JournalEntry.guide.JournalEntryPage.p2]'),
            '[[JournalEntry.guide.JournalEntryPage.p2|Appendix]]'
        )


class TestIndexOnlyCollections(unittest.TestCase):
    """Targets embedded in documents that would need an asynchronous load."""

    def make_resolver(self, use_uuid):
        options = ExportOptions(use_uuid_for_notename=use_uuid, progress_bars=False)
        self.ctx = make_context(build_compendium(), options)
        return self.ctx.resolver

    def tearDown(self):
        self.ctx.assets.close()

    def test_parent_fallback_in_name_mode(self):
        resolver = self.make_resolver(use_uuid=False)
        result = resolver.rewrite_links('@UUID[Compendium.world.monsters.Actor.a1.Item.i1]{Claw}')
        self.assertEqual(result, '[[Monsters_Beasts/Goblin/Claw|Claw]]')

    def test_parent_fallback_needs_label(self):
        resolver = self.make_resolver(use_uuid=False)
        result = resolver.rewrite_links('@UUID[Compendium.world.monsters.Actor.a1.Item.i1]')
        self.assertEqual(result, '[[Compendium.world.monsters.Actor.a1.Item.i1]]')

    def test_dummy_link_in_identity_mode(self):
        resolver = self.make_resolver(use_uuid=True)
        result = resolver.rewrite_links('@UUID[Compendium.world.monsters.Actor.a1.Item.i1]{Claw}')
        self.assertEqual(result, '[[Compendium.world.monsters.Actor.a1.Item.i1|Claw]]')

    def test_indexed_document_resolves_from_index(self):
        resolver = self.make_resolver(use_uuid=False)
        result = resolver.rewrite_links('@UUID[Compendium.world.monsters.Actor.a1]{Gob}')
        self.assertEqual(result, '[[Goblin|Gob]]')


class TestFileRewriting:
    """Test bundling of local image references."""

    def test_local_image_is_bundled(self, world, name_options):
        ctx = make_context(world, name_options)
        try:
            result = ctx.resolver.rewrite_files('Map: ![](worlds/demo/map%20one.png)')
        finally:
            ctx.assets.close()

        assert result == 'Map: ![[worlds-demo-map one.png]]'
        assert 'worlds/demo/map one.png' in ctx.assets.records

    def test_alt_text_becomes_label(self, world, name_options):
        ctx = make_context(world, name_options)
        try:
            result = ctx.resolver.rewrite_files('![Tavern](maps/tavern.webp)')
        finally:
            ctx.assets.close()

        assert result == '![[maps-tavern.webp|Tavern]]'

    def test_remote_and_inline_images_are_untouched(self, world, name_options):
        ctx = make_context(world, name_options)
        text = '![](https://example.com/a.png) ![](data:image/png;base64,AAAA)'
        try:
            result = ctx.resolver.rewrite_files(text)
        finally:
            ctx.assets.close()

        assert result == text
        assert ctx.assets.records == {}


class TestSectionIndex:
    def test_slugify(self):
        assert slugify('  Café  Royale ') == 'cafe-royale'
        assert slugify("The King's Road") == 'the-kings-road'

    def test_repeated_headings_get_suffixes(self):
        sections = build_section_index('<h1>Room</h1><p>x</p><h2>Room</h2><h3></h3><h2>Exit</h2>')
        assert sections == {'room': 'Room', 'room-1': 'Room', 'exit': 'Exit'}

    def test_empty_html(self):
        assert build_section_index('') == {}
