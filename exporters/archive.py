"""In-memory archive accumulator that becomes the final zip bundle."""

import io
import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Union

from converters.link_parser import sanitize_filename
from models import OutputFile

logger = logging.getLogger('vtt_markdown_export.exporters.archive')


class MarkdownArchive:
    """
    Write-once collection of output files for a single export run.

    Entries are kept in insertion order. Apart from the name-collision checks
    (`path in archive`, `has_directory`) nothing reads entries back until
    `finalize`.
    """

    def __init__(self) -> None:
        self._files: Dict[str, OutputFile] = {}

    def put_file(self, path: str, content: Union[str, bytes], is_binary: bool = False) -> None:
        if path in self._files:
            logger.warning(f"Replacing existing archive entry '{path}'")
        self._files[path] = OutputFile(path=path, content=content, is_binary=is_binary)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def has_directory(self, directory: str) -> bool:
        """True if any entry lives under `directory`."""
        prefix = directory.rstrip('/') + '/'
        return any(path.startswith(prefix) for path in self._files)

    def __len__(self) -> int:
        return len(self._files)

    @property
    def files(self) -> List[OutputFile]:
        return list(self._files.values())

    @property
    def paths(self) -> List[str]:
        return list(self._files)

    def get(self, path: str) -> Optional[OutputFile]:
        return self._files.get(path)

    def finalize(self) -> bytes:
        """Compress every entry into a zip archive and return its bytes."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as bundle:
            for output in self._files.values():
                data = output.content
                if isinstance(data, str):
                    data = data.encode('utf-8')
                bundle.writestr(output.path, data)
        logger.debug(f"Finalized archive with {len(self._files)} entries")
        return buffer.getvalue()

    def save(self, directory: Union[str, Path], name: str) -> Path:
        """
        Write the finalized archive as `<sanitized name>.zip`.

        Args:
            directory: Destination directory (created if missing)
            name: Archive name without extension

        Returns:
            Path of the written zip file
        """
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{sanitize_filename(name)}.zip"
        target.write_bytes(self.finalize())
        logger.info(f"Saved archive to {target}")
        return target


__all__ = ['MarkdownArchive']
