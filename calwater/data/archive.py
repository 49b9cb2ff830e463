"""
archive.py
----------
Historical observation bundle: one CSV file inside a tar archive,
compressed with LZMA.

Both the .xz container and the legacy .lzma ("alone") container are read;
archives are always written as .xz.  The CSV inside has the same record
shape as a live CDEC body (see records.py).
"""

import io
import logging
import lzma
import tarfile
import time
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MEMBER = "observations.csv"


class ArchiveError(Exception):
    pass


def extract_records(archive_bytes: bytes) -> str:
    """Decompress + unpack an archive, return the text of its single file."""
    try:
        tar_bytes = lzma.decompress(archive_bytes, format=lzma.FORMAT_AUTO)
    except lzma.LZMAError as exc:
        raise ArchiveError(f"LZMA decompression failed: {exc}") from exc

    try:
        with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as tf:
            members = [m for m in tf.getmembers() if m.isfile()]
            if len(members) != 1:
                raise ArchiveError(
                    f"Expected exactly one file in archive, found "
                    f"{[m.name for m in members]}"
                )
            fh = tf.extractfile(members[0])
            data = fh.read()
    except tarfile.TarError as exc:
        raise ArchiveError(f"tar unpacking failed: {exc}") from exc

    logger.debug("Extracted %s (%d bytes)", members[0].name, len(data))
    return data.decode("utf-8", errors="replace")


def build_archive(csv_text: str, member_name: str = DEFAULT_MEMBER) -> bytes:
    """Bundle one CSV body as tar + xz bytes."""
    payload = csv_text.encode("utf-8")
    info = tarfile.TarInfo(name=member_name)
    info.size  = len(payload)
    info.mtime = int(time.time())

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:") as tf:
        tf.addfile(info, io.BytesIO(payload))
    return lzma.compress(buf.getvalue(), format=lzma.FORMAT_XZ)


def load_archive(path: Path) -> str:
    path = Path(path)
    if not path.exists():
        raise ArchiveError(f"Archive not found: {path}")
    logger.info("Reading historical archive %s", path)
    return extract_records(path.read_bytes())
