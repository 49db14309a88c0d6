"""Asset bundler: schedules referenced files for the archive and names them."""

import hashlib
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import unquote, urljoin

import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

from config_loader import ExportOptions
from converters.link_parser import format_link, is_remote
from logger import ProgressTracker
from models import AssetRecord

ASSET_DIRECTORY = "zz_asset-files"

# Conservative limit on entry path length inside the zip
MAX_ARCHIVE_PATH = 250
MAX_ASSET_NAME = MAX_ARCHIVE_PATH - len(ASSET_DIRECTORY)

HASH_LENGTH = 8


def archive_name_for(source_path: str) -> str:
    """
    Flatten a source path into a single asset file name.

    The path is percent-decoded, every '/' becomes '-', and only the tail is
    kept so the name fits inside the asset directory's length budget.
    """
    return unquote(source_path).replace('/', '-')[-MAX_ASSET_NAME:]


class AssetBundler:
    """
    Registers binary files referenced by documents and fetches them in the background.

    This bundler:
    1. Derives a length-bounded archive name from the source path
    2. Reuses the name for repeated references to the same path
    3. Submits the fetch to a worker pool without waiting for it
    4. Writes every payload into the archive once traversal is complete
    """

    def __init__(
        self,
        options: ExportOptions,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.options = options
        self.logger = logger or logging.getLogger('vtt_markdown_export.exporters.asset_bundler')
        self.session = session or self._create_session()
        self.records: Dict[str, AssetRecord] = {}
        self._owners: Dict[str, str] = {}  # archive name -> source path
        self._executor: Optional[ThreadPoolExecutor] = None

        self.stats = {
            'registered': 0,
            'reused': 0,
            'collisions': 0,
            'written': 0,
            'empty': 0,
            'total_size_bytes': 0
        }

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=self.options.asset_max_retries,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        if self.options.asset_auth_token:
            session.headers['Authorization'] = f"Bearer {self.options.asset_auth_token}"
        return session

    def embed(self, source_path: str, label: Optional[str] = None, embed: bool = True) -> str:
        """
        Register a file and return its portable link straight away.

        Args:
            source_path: Path or URL of the file, possibly percent-encoded
            label: Optional label (or display size) for the link
            embed: Whether the link embeds the file

        Returns:
            Link to the file inside the asset directory
        """
        record = self.register(source_path)
        return format_link(record.archive_name, label, embed)

    def register(self, source_path: str) -> AssetRecord:
        """Schedule a file for inclusion exactly once per distinct source path."""
        key = unquote(source_path)
        record = self.records.get(key)
        if record is not None:
            self.stats['reused'] += 1
            return record

        archive_name = self._unique_name(key)
        record = AssetRecord(
            source_path=key,
            archive_name=archive_name,
            payload=self._pool().submit(self._fetch, key)
        )
        self.records[key] = record
        self.stats['registered'] += 1
        self.logger.debug(f"Registered asset '{key}' as '{archive_name}'")
        return record

    def _unique_name(self, source_path: str) -> str:
        name = archive_name_for(source_path)
        owner = self._owners.get(name)
        if owner is not None and owner != source_path:
            digest = hashlib.sha1(source_path.encode('utf-8')).hexdigest()[:HASH_LENGTH]
            stem, ext = os.path.splitext(name)
            room = MAX_ASSET_NAME - len(ext) - HASH_LENGTH - 1
            name = f"{stem[-room:]}-{digest}{ext}"
            self.stats['collisions'] += 1
            self.logger.warning(
                f"Asset name collision between '{owner}' and '{source_path}'; using '{name}'"
            )
        self._owners[name] = source_path
        return name

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.options.asset_max_workers,
                thread_name_prefix='asset-fetch'
            )
        return self._executor

    def _fetch(self, source_path: str) -> bytes:
        """Fetch one file; any failure yields an empty payload."""
        try:
            if is_remote(source_path) or self.options.asset_base_url:
                return self._fetch_url(self._resolve_url(source_path))
            return self._read_local(source_path)
        except (requests.RequestException, OSError, ValueError) as e:
            self.logger.error(f"Failed to fetch file from '{source_path}': {e}")
            return b""

    def _resolve_url(self, source_path: str) -> str:
        if source_path.startswith('//'):
            return f"https:{source_path}"
        if is_remote(source_path):
            return source_path
        base = self.options.asset_base_url.rstrip('/') + '/'
        return urljoin(base, source_path.lstrip('/'))

    def _fetch_url(self, url: str) -> bytes:
        response = self.session.get(url, timeout=self.options.asset_request_timeout)
        if response.status_code != 200:
            self.logger.error(f"Failed to fetch file from '{url}' (response {response.status_code})")
            return b""
        self.logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content

    def _read_local(self, source_path: str) -> bytes:
        root = Path(self.options.asset_source_root).resolve()
        path = (root / source_path.lstrip('/')).resolve()
        if root != path and root not in path.parents:
            self.logger.error(f"Refusing to read '{source_path}': outside the asset source root {root}")
            return b""
        if not path.is_file():
            self.logger.error(f"Asset file not found: {path}")
            return b""
        return path.read_bytes()

    def collect(self, archive) -> Dict[str, int]:
        """
        Wait for every pending fetch and write the payloads into the archive.

        Entries are written in registration order, so completion order never
        affects the archive.

        Args:
            archive: MarkdownArchive receiving the files

        Returns:
            Asset statistics
        """
        records: List[AssetRecord] = list(self.records.values())
        try:
            with ProgressTracker(total_items=len(records), item_type='assets') as tracker:
                iterator = records
                if self._should_show_progress():
                    iterator = tqdm(records, desc="Fetching assets", leave=False)

                for record in iterator:
                    payload = record.payload.result() if record.payload is not None else b""
                    archive.put_file(
                        f"{ASSET_DIRECTORY}/{record.archive_name}", payload, is_binary=True
                    )
                    self.stats['written'] += 1
                    self.stats['total_size_bytes'] += len(payload)
                    if not payload:
                        self.stats['empty'] += 1
                    tracker.increment(success=bool(payload))
        finally:
            self.close()
        return self.stats.copy()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _should_show_progress(self) -> bool:
        return self.options.progress_bars and sys.stdout.isatty()

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()


__all__ = [
    'ASSET_DIRECTORY',
    'MAX_ARCHIVE_PATH',
    'MAX_ASSET_NAME',
    'AssetBundler',
    'archive_name_for',
]
