from __future__ import annotations

import tarfile
from datetime import datetime

from archive_builders import DEFAULT_TAR_MTIME, make_tar, make_tar_with_symlink
from archpeek.modules.finders.tar_parser import (
    BLOCK_SIZE,
    HeaderKind,
    _parse_numeric,
    data_blocks_size,
    parse_tar_entries,
    parse_tar_header,
)


def test_single_file_reports_name_and_size() -> None:
    entries = parse_tar_entries(make_tar({"a.txt": b"hi"}))

    assert len(entries) == 1
    assert entries[0].path == "a.txt"
    assert entries[0].uncompressed_size == 2
    assert not entries[0].is_directory
    assert entries[0].modification_date == datetime.fromtimestamp(DEFAULT_TAR_MTIME)


def test_two_zero_blocks_list_nothing() -> None:
    assert parse_tar_entries(b"\x00" * (2 * BLOCK_SIZE)) == []


def test_empty_and_short_buffers_list_nothing() -> None:
    assert parse_tar_entries(b"") == []
    assert parse_tar_entries(b"x" * 100) == []


def test_directories_have_trailing_slash_and_zero_size(sample_tar_bytes) -> None:
    entries = parse_tar_entries(sample_tar_bytes)

    by_path = {e.path: e for e in entries}
    assert set(by_path) == {"docs/", "docs/readme.md", "src/main.py", "a.txt"}
    assert by_path["docs/"].is_directory
    assert by_path["docs/"].uncompressed_size == 0
    assert by_path["src/main.py"].uncompressed_size == len(b"print('x')\n")


def test_gnu_long_name_applies_to_next_entry() -> None:
    long_name = "deep/" + "n" * 180 + ".txt"
    entries = parse_tar_entries(make_tar({long_name: b"abc", "short.txt": b"x"}))

    assert [e.path for e in entries] == [long_name, "short.txt"]
    assert entries[0].uncompressed_size == 3


def test_ustar_prefix_is_joined_to_name() -> None:
    name = "p" * 60 + "/" + "q" * 60 + "/file.txt"
    entries = parse_tar_entries(make_tar({name: b"z"}, fmt=tarfile.USTAR_FORMAT))
    assert entries[0].path == name


def test_pax_headers_are_skipped() -> None:
    data = make_tar({"a.txt": b"hi"}, fmt=tarfile.PAX_FORMAT, pax_headers={"comment": "hello"})
    assert [e.path for e in parse_tar_entries(data)] == ["a.txt"]


def test_symlinks_are_not_listed() -> None:
    entries = parse_tar_entries(make_tar_with_symlink("target.txt", "link.txt"))
    assert [e.path for e in entries] == ["target.txt"]


def test_metadata_entries_are_filtered() -> None:
    data = make_tar({"__MACOSX/x": b"1", "dir/._a": b"2", "dir/a": b"3"})
    assert [e.path for e in parse_tar_entries(data)] == ["dir/a"]


def test_header_classification() -> None:
    data = make_tar({"a.txt": b"hi"})

    header = parse_tar_header(data, 0)
    assert header.kind is HeaderKind.ENTRY
    assert header.data_size == 2
    assert header.next_offset == 2 * BLOCK_SIZE

    assert parse_tar_header(data, header.next_offset).kind is HeaderKind.END
    assert parse_tar_header(b"short").kind is HeaderKind.END


def test_header_uses_stashed_long_name() -> None:
    data = make_tar({"a.txt": b"hi"})
    header = parse_tar_header(data, 0, long_name="renamed.txt")
    assert header.entry.path == "renamed.txt"
    assert header.consumed_long_name


def test_numeric_fields() -> None:
    assert _parse_numeric(b"0000644\x00") == 0o644
    assert _parse_numeric(b"   12 \x00") == 0o12
    assert _parse_numeric(b"\x00" * 12) == 0
    assert _parse_numeric(b"garbage", default=0) == 0
    # GNU base-256: high bit set, big-endian payload
    assert _parse_numeric(b"\x80" + b"\x00" * 9 + b"\x10\x00") == 4096


def test_data_blocks_are_rounded_to_whole_blocks() -> None:
    assert data_blocks_size(0) == 0
    assert data_blocks_size(1) == BLOCK_SIZE
    assert data_blocks_size(BLOCK_SIZE) == BLOCK_SIZE
    assert data_blocks_size(BLOCK_SIZE + 1) == 2 * BLOCK_SIZE
