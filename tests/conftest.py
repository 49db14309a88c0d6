"""Shared fixtures for export tests."""

from unittest.mock import Mock

import pytest

from config_loader import ExportOptions
from exporters.asset_bundler import AssetBundler
from exporters.context import ExportContext
from models import CompoundDocument, DocumentIndex, Folder, JournalPage


def make_journal(journal_id, name, pages=None, sort=0):
    """Journal entry with `(page_id, page_name, html)` pages, sorted as given."""
    journal = CompoundDocument(id=journal_id, name=name, sort=sort)
    for position, (page_id, page_name, html) in enumerate(pages or []):
        journal.add_page(JournalPage(
            id=f"{journal_id}.JournalEntryPage.{page_id}",
            name=page_name,
            sort=position,
            content=html,
        ))
    return journal


def make_context(root, options, session=None):
    index = DocumentIndex()
    index.register(root)
    assets = AssetBundler(options, session=session or Mock())
    return ExportContext(options, index, assets=assets)


@pytest.fixture
def name_options(tmp_path):
    return ExportOptions(
        output_directory=str(tmp_path / 'out'),
        use_uuid_for_notename=False,
        folder_names_as_uuid=False,
        asset_source_root=str(tmp_path),
        progress_bars=False,
    )


@pytest.fixture
def uuid_options(tmp_path):
    return ExportOptions(
        output_directory=str(tmp_path / 'out'),
        asset_source_root=str(tmp_path),
        progress_bars=False,
    )


@pytest.fixture
def world():
    """Folder holding the journal `JournalEntry.abc123` named "World"."""
    root = Folder(id='Folder.root', name='Campaign')
    root.add_child(make_journal('JournalEntry.abc123', 'World', [('p0', 'World', '<p>Hello world</p>')]))
    return root
