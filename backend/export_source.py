"""
Chunked reading of Apple Health exports.

The stream driver never touches files itself; it asks a `ChunkSource` for
`read(offset, length)` and gets text back. Offsets and lengths are in
bytes. Decoding goes through an incremental UTF-8 decoder, so a multi-byte
character cut by a chunk boundary comes out whole with the next chunk.

`open_export` accepts the `export.xml` file itself or the `export.zip`
the Health app produces.
"""

import codecs
import io
import os
import zipfile
import zlib
from typing import BinaryIO, Optional

ZIP_EXPORT_MEMBERS = ("apple_health_export/export.xml", "export.xml")


class ExportReadError(Exception):
    """A chunk of the export could not be read."""


class UnsupportedExportError(ValueError):
    """The export is neither an `.xml` nor a `.zip` file."""


class ChunkSource:
    """Sequential, offset-addressed text reads over a binary stream."""

    def __init__(self, stream: BinaryIO, size: int, name: str = "<stream>", owner=None):
        self.stream = stream
        self.size = size
        self.name = name
        self._owner = owner
        self._pos = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def read(self, offset: int, length: int) -> str:
        """Text for bytes [offset, offset + length)."""

        try:
            if offset != self._pos:
                self.stream.seek(offset)
                self._decoder.reset()
            data = self.stream.read(length)
        except (OSError, EOFError, zipfile.BadZipFile, zlib.error) as e:
            raise ExportReadError(f"Could not read {self.name} at byte {offset}: {e}") from e
        self._pos = offset + len(data)
        return self._decoder.decode(data, final=self._pos >= self.size)

    def close(self) -> None:
        self.stream.close()
        if self._owner is not None:
            self._owner.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class BytesChunkSource(ChunkSource):
    def __init__(self, data: bytes, name: str = "<bytes>"):
        super().__init__(io.BytesIO(data), len(data), name)


class TextChunkSource(BytesChunkSource):
    def __init__(self, text: str, name: str = "<text>"):
        super().__init__(text.encode("utf-8"), name)


def _find_zip_member(archive: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
    names = archive.namelist()
    for candidate in ZIP_EXPORT_MEMBERS:
        if candidate in names:
            return archive.getinfo(candidate)
    for name in names:
        if name.endswith("export.xml"):
            return archive.getinfo(name)
    return None


def check_export_path(path: str) -> None:
    """Raise unless `path` names an existing `.xml` or `.zip` file."""

    lower = path.lower()
    if not (lower.endswith(".xml") or lower.endswith(".zip")):
        raise UnsupportedExportError(
            f"Unsupported export file: {os.path.basename(path)} (expected export.xml or export.zip)"
        )
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Export file not found: {path}")


def open_export(path: str) -> ChunkSource:
    """Open an Apple Health export for chunked reading.

    Raises:
    - `FileNotFoundError` if `path` does not exist
    - `UnsupportedExportError` for anything but `.xml` / `.zip`
    - `ExportReadError` for unreadable archives or archives without export.xml
    """

    check_export_path(path)
    if path.lower().endswith(".xml"):
        try:
            f = open(path, "rb")
        except OSError as e:
            raise ExportReadError(f"Could not open {path}: {e}") from e
        return ChunkSource(f, os.path.getsize(path), name=path)

    try:
        archive = zipfile.ZipFile(path)
    except (OSError, zipfile.BadZipFile) as e:
        raise ExportReadError(f"Could not read zip {path}: {e}") from e
    info = _find_zip_member(archive)
    if info is None:
        archive.close()
        raise ExportReadError(f"Could not find export.xml in {path}")
    return ChunkSource(archive.open(info), info.file_size, name=f"{path}:{info.filename}", owner=archive)
