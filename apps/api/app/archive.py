"""ZIP packaging of export bundles.

stream_archive() is the default: it yields compressed bytes entry by entry
so a response can start before the whole bundle is packed. build_archive()
buffers the full archive in memory.
"""

import zipfile
from datetime import date
from typing import Iterator, List, Mapping, Optional

ARCHIVE_ROOT = "logoforge-icons"

STREAM_COMPRESSION_LEVEL = 6
BUFFERED_COMPRESSION_LEVEL = 9

# Fixed entry timestamp so identical exports give identical archives
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ENTRY_MODE = 0o644


class _ChunkSink:
    """Write-only file object that collects chunks until drained.

    It deliberately has no seek()/tell(), so zipfile writes in streaming
    mode (data descriptors after each entry) instead of seeking back.
    """

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _entry_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=ENTRY_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = ENTRY_MODE << 16
    return info


def stream_archive(
    files: Mapping[str, bytes],
    compression_level: int = STREAM_COMPRESSION_LEVEL,
    root: Optional[str] = ARCHIVE_ROOT,
) -> Iterator[bytes]:
    """Yield a ZIP archive of files incrementally, each path under root/."""
    sink = _ChunkSink()
    with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
        for path, data in files.items():
            name = f"{root}/{path}" if root else path
            zf.writestr(
                _entry_info(name),
                data,
                compress_type=zipfile.ZIP_DEFLATED,
                compresslevel=compression_level,
            )
            chunk = sink.drain()
            if chunk:
                yield chunk

    # Central directory is written on close
    tail = sink.drain()
    if tail:
        yield tail


def build_archive(
    files: Mapping[str, bytes],
    compression_level: int = BUFFERED_COMPRESSION_LEVEL,
    root: Optional[str] = ARCHIVE_ROOT,
) -> bytes:
    """Build the whole ZIP archive in memory."""
    return b"".join(stream_archive(files, compression_level=compression_level, root=root))


def archive_filename(day: Optional[date] = None) -> str:
    """Download name embedding the export date, e.g. logoforge-icons-20260118.zip."""
    day = day or date.today()
    return f"{ARCHIVE_ROOT}-{day.strftime('%Y%m%d')}.zip"
