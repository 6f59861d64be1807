from __future__ import annotations

import io
from datetime import datetime

from rich.console import Console

from archpeek.modules.finders.archive_entry import ArchiveEntry, dos_datetime, is_metadata_path, unix_datetime
from archpeek.modules.formatters import format_mtime, human_readable_size, render_tree
from archpeek.modules.keepers.display import Tee, display_preview_result, format_entry_line
from archpeek.modules.keepers.previewer import PreviewResult
from archpeek.modules.keepers.tree_builder import build_tree


def _render(tree) -> str:
    buffer = io.StringIO()
    Console(file=buffer, width=100, no_color=True).print(tree)
    return buffer.getvalue()


def test_human_readable_size() -> None:
    assert human_readable_size(0) == "0.0 B"
    assert human_readable_size(1536) == "1.5 KB"
    assert human_readable_size(5 * 1024 ** 4) == "5.0 TB"
    assert human_readable_size(None) == "-"


def test_format_mtime() -> None:
    assert format_mtime(datetime(2024, 1, 15, 10, 30)) == "2024-01-15 10:30"
    assert format_mtime(None) == "----.--.-- --:--"


def test_dos_and_unix_dates() -> None:
    assert dos_datetime(0x0021, 0) == datetime(1980, 1, 1)
    # 2024-01-15 10:30:58
    date = ((2024 - 1980) << 9) | (1 << 5) | 15
    time = (10 << 11) | (30 << 5) | 29
    assert dos_datetime(date, time) == datetime(2024, 1, 15, 10, 30, 58)
    assert dos_datetime(0, 0) is None
    assert unix_datetime(0) is None


def test_metadata_paths() -> None:
    assert is_metadata_path("__MACOSX/a")
    assert is_metadata_path("._a")
    assert is_metadata_path("dir/._a")
    assert not is_metadata_path("dir/a._b")
    assert not is_metadata_path("MACOSX/a")


def test_render_tree_shows_nesting_and_details() -> None:
    tree = build_tree([
        ArchiveEntry("docs/readme.md", False, 2048, datetime(2024, 1, 15, 10, 30)),
        ArchiveEntry("a.txt", False, 2),
    ])

    text = _render(render_tree(tree, label="sample.zip"))

    assert "sample.zip" in text
    assert "docs/" in text
    assert "readme.md  2.0 KB  2024-01-15 10:30" in text
    assert "a.txt  2.0 B" in text


def test_render_tree_simple_mode_hides_details() -> None:
    tree = build_tree([ArchiveEntry("a.txt", False, 2)])
    assert "2.0 B" not in _render(render_tree(tree, show_details=False))


def test_format_entry_line() -> None:
    entry = ArchiveEntry("dir/a.txt", False, 1024, datetime(2024, 1, 15, 10, 30))
    assert format_entry_line(entry).endswith("2024-01-15 10:30      1.0 KB  dir/a.txt")
    assert format_entry_line(entry, show_details=False) == "  [FILE] dir/a.txt (1.0 KB)"
    assert format_entry_line(ArchiveEntry("dir/", True, 0), show_details=False) == "  [DIR]  dir/"


def test_display_error_and_flat_listing(capsys) -> None:
    failed = PreviewResult("x.zip", "zip", 0, [], [], error="Unable to preview x.zip: boom")
    display_preview_result(failed)
    assert "[!] Error: Unable to preview x.zip: boom" in capsys.readouterr().out

    entries = [ArchiveEntry("a.txt", False, 2)]
    ok = PreviewResult("x.zip", "zip", 1, entries, build_tree(entries), bytes_read=22)
    display_preview_result(ok, flat=True, simple=True, verbose=True)
    out = capsys.readouterr().out
    assert "[Stats] Read: 22.0 B" in out
    assert "(0 folders, 1 files)" in out
    assert "  [FILE] a.txt (2.0 B)" in out


def test_tee_duplicates_writes() -> None:
    a, b = io.StringIO(), io.StringIO()
    tee = Tee(a, b)
    tee.write("hello\n")
    tee.flush()
    assert a.getvalue() == b.getvalue() == "hello\n"
