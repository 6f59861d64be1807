from __future__ import annotations

from archpeek.modules.finders.archive_entry import ArchiveEntry
from archpeek.modules.keepers.previewer import ArchiveFormat, ParseOptions, PreviewResult, preview_path
from archpeek.modules.keepers.tree_builder import build_tree
from archpeek.tui import ArchivePreviewApp
from archpeek.tui.app import status_text


def test_status_text_summarizes_counts() -> None:
    entries = [ArchiveEntry("d/a.txt", False, 2)]
    result = PreviewResult("x.zip", "zip", 1, entries, build_tree(entries), bytes_read=2048)
    assert status_text(result) == "zip: 1 entries (1 folders, 1 files), read 2.0 KB"


def test_status_text_shows_error(tmp_path) -> None:
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"x")
    result = preview_path(bad)
    assert status_text(result) == result.error


def test_app_keeps_target_path(archive_dir) -> None:
    app = ArchivePreviewApp(archive_dir / "sample.zip")
    assert app.archive_path.name == "sample.zip"
    assert app.preview_result is None
    assert app.archive_format is None


def test_app_keeps_forced_format_and_options(archive_dir) -> None:
    options = ParseOptions(capture_long_names=False)
    app = ArchivePreviewApp(archive_dir / "sample.tar", options=options, fmt=ArchiveFormat.TAR)
    assert app.archive_format is ArchiveFormat.TAR
    assert app.parse_options is options
