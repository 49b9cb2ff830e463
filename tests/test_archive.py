import io
import lzma
import tarfile

import pytest

from calwater.data.archive import ArchiveError, build_archive, extract_records, load_archive


def _tar(files: dict) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:") as tf:
        for name, text in files.items():
            payload = text.encode("utf-8")
            info = tarfile.TarInfo(name=name)
            info.size = len(payload)
            tf.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


class TestArchive:

    def test_build_then_extract(self, vil_body):
        assert extract_records(build_archive(vil_body)) == vil_body

    def test_legacy_lzma_container(self, vil_body):
        data = lzma.compress(_tar({"output.csv": vil_body}), format=lzma.FORMAT_ALONE)
        assert extract_records(data) == vil_body

    def test_directories_are_ignored(self, vil_body):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:") as tf:
            folder = tarfile.TarInfo(name="obj")
            folder.type = tarfile.DIRTYPE
            tf.addfile(folder)
            payload = vil_body.encode("utf-8")
            info = tarfile.TarInfo(name="obj/output.csv")
            info.size = len(payload)
            tf.addfile(info, io.BytesIO(payload))
        assert extract_records(lzma.compress(buf.getvalue())) == vil_body

    def test_more_than_one_file(self):
        data = lzma.compress(_tar({"a.csv": "x", "b.csv": "y"}))
        with pytest.raises(ArchiveError, match="exactly one"):
            extract_records(data)

    def test_empty_archive(self):
        with pytest.raises(ArchiveError):
            extract_records(lzma.compress(_tar({})))

    def test_not_lzma(self):
        with pytest.raises(ArchiveError, match="LZMA"):
            extract_records(b"plain text, not compressed")

    def test_load_archive(self, tmp_path, vil_body):
        path = tmp_path / "history.tar.xz"
        path.write_bytes(build_archive(vil_body))
        assert load_archive(path) == vil_body

    def test_load_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveError, match="not found"):
            load_archive(tmp_path / "missing.tar.xz")
