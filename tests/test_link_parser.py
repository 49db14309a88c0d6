"""Tests for the cross-reference grammar and link formatting."""

from converters.link_parser import (
    canonical_identity,
    format_link,
    is_external,
    is_known_type,
    is_remote,
    join_path,
    parse_references,
    sanitize_filename,
)


class TestParseReferences:
    """Test extraction of `@Type[target#anchor]{label}` references."""

    def test_reference_with_label(self):
        refs = parse_references('See @JournalEntry[abc123]{Hello} for more.')

        assert len(refs) == 1
        ref = refs[0]
        assert ref.doc_type == 'JournalEntry'
        assert ref.target == 'abc123'
        assert ref.label == 'Hello'
        assert ref.anchor is None
        assert ref.embed is False
        assert ref.raw == '@JournalEntry[abc123]{Hello}'

    def test_anchor_and_embed_prefix(self):
        refs = parse_references('@inlineJournalEntryPage[xyz#secret-door]')

        assert refs[0].doc_type == 'JournalEntryPage'
        assert refs[0].embed is True
        assert refs[0].target == 'xyz'
        assert refs[0].anchor == 'secret-door'
        assert refs[0].label is None

    def test_multiple_references_keep_order_and_offsets(self):
        text = '@Actor[a1]{Hero} meets @Item[i1]'
        refs = parse_references(text)

        assert [ref.target for ref in refs] == ['a1', 'i1']
        assert text[refs[1].start:refs[1].end] == '@Item[i1]'

    def test_unknown_type_is_parsed_but_not_known(self):
        refs = parse_references('@Check[dex]{Dexterity}')

        assert len(refs) == 1
        assert not is_known_type(refs[0])

    def test_plain_text_has_no_references(self):
        assert parse_references('email me @ home [soon]') == []


class TestCanonicalIdentity:
    """Test normalization of references into global identities."""

    def test_typed_reference_is_prefixed(self):
        ref = parse_references('@RollTable[t1]')[0]
        assert canonical_identity(ref) == 'RollTable.t1'

    def test_uuid_reference_is_kept(self):
        ref = parse_references('@UUID[Compendium.world.monsters.Actor.a1]{Goblin}')[0]
        assert canonical_identity(ref) == 'Compendium.world.monsters.Actor.a1'

    def test_compendium_reference(self):
        ref = parse_references('@Compendium[world.monsters.a1]')[0]
        assert is_known_type(ref)
        assert canonical_identity(ref) == 'Compendium.world.monsters.a1'


class TestFormatLink:
    """Test wiki link output."""

    def test_label_equal_to_path_is_dropped(self):
        assert format_link('World', 'World') == '[[World]]'

    def test_label_and_embed(self):
        assert format_link('World', 'Hello') == '[[World|Hello]]'
        assert format_link('map.png', embed=True) == '![[map.png]]'
        assert format_link('map.png', '150', embed=True) == '![[map.png|150]]'


class TestFileNames:
    def test_sanitize_filename(self):
        assert sanitize_filename('Who? What: <this>/"that"|*') == 'Who_ What_ _this___that___'

    def test_join_path(self):
        assert join_path('', 'a.md') == 'a.md'
        assert join_path('World/Sub', 'a.md') == 'World/Sub/a.md'


class TestUrlKinds:
    def test_remote_urls(self):
        assert is_remote('https://example.com/map.webp')
        assert is_remote('http://example.com/map.webp')
        assert is_remote('//cdn.example.com/map.webp')
        assert not is_remote('worlds/maps/map.webp')
        assert not is_remote('data:image/png;base64,AAAA')

    def test_inline_data_is_external_but_not_remote(self):
        assert is_external('data:image/png;base64,AAAA')
        assert is_external('https://example.com/map.webp')
        assert not is_external('/worlds/maps/map.webp')
