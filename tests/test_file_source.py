"""Tests for the local file source."""

from quickshare.adapters.file_source import DEFAULT_MIME_TYPE, LocalFileSource


def test_metadata_reads_name_size_and_type(tmp_path) -> None:
    path = tmp_path / "holiday.png"
    path.write_bytes(b"x" * 42)
    source = LocalFileSource()

    metadata = source.metadata(LocalFileSource.ref_for(path))

    assert metadata.name == "holiday.png"
    assert metadata.size == 42
    assert metadata.mime_type == "image/png"


def test_unknown_extension_falls_back_to_octet_stream(tmp_path) -> None:
    path = tmp_path / "blob.unknownext"
    path.write_bytes(b"abc")

    metadata = LocalFileSource().metadata(LocalFileSource.ref_for(path))

    assert metadata.mime_type == DEFAULT_MIME_TYPE


def test_open_stream_returns_file_bytes(tmp_path) -> None:
    path = tmp_path / "a.jpg"
    path.write_bytes(b"jpeg bytes")

    with LocalFileSource().open_stream(LocalFileSource.ref_for(path)) as stream:
        assert stream.read() == b"jpeg bytes"


def test_ref_for_resolves_relative_paths(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    ref = LocalFileSource.ref_for("photo.jpg")

    assert ref.uri == str((tmp_path / "photo.jpg").resolve())
