"""Tests for metadata blocks and table-of-contents files."""

from exporters.frontmatter import (
    ITEM_BREAK,
    format_sort_key,
    frontmatter,
    frontmatter_folder,
    table_of_contents,
)
from models import GenericDocument, TabularDocument


class TestSortKeys:
    def test_keys_are_zero_padded(self):
        assert format_sort_key(101) == '0000000101'
        assert format_sort_key(10111) == '0000010111'

    def test_nested_keys_sort_after_their_parent(self):
        keys = [format_sort_key(k) for k in (101, 1011, 1012, 10111)]
        assert sorted(keys) == keys


class TestFrontmatter:
    def test_document_block(self):
        doc = TabularDocument(id='RollTable.t1', name='Loot')

        assert frontmatter(doc, 101) == (
            '---\n'
            'title: "Loot"\n'
            'icon: ":list:"\n'
            'aliases: "Loot"\n'
            'foundryId: RollTable.t1\n'
            'sortOrder: "0000000101"\n'
            'tags:\n'
            '  - RollTable\n'
            '---\n'
            '\n# Loot\n'
        )

    def test_header_can_be_hidden(self):
        doc = GenericDocument(id='Item.i1', name='Sword')
        assert frontmatter(doc, 5, show_header=False).endswith('  - Item\n---\n')

    def test_quotes_in_names_are_escaped(self):
        doc = GenericDocument(id='Item.i1', name='The "Blade"')
        assert 'title: "The \\"Blade\\""\n' in frontmatter(doc)

    def test_folder_block_has_no_identity(self):
        block = frontmatter_folder('Maps', 1011)

        assert 'foundryId' not in block
        assert 'icon: ":folder:"\n' in block
        assert 'tags:\n  - "toc"\n' in block
        assert 'sortOrder: "0000001011"\n' in block


class TestTableOfContents:
    def test_break_between_groups(self):
        toc = table_of_contents('World', ['[[World/Sub/Sub|Sub]]', ITEM_BREAK, '[[./Intro|Intro]]'], 101)

        assert toc.endswith(
            '\n## Table of Contents\n'
            '\n- [[World/Sub/Sub|Sub]]'
            '\n---'
            '\n- [[./Intro|Intro]]'
        )
        assert toc.startswith(frontmatter_folder('World', 101))
