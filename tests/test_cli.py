"""Command-line entrypoint behavior: modes, output switches and exit codes."""

from __future__ import annotations

import json
import sys
from unittest import mock

import pytest

import main
from archpeek.modules.cli import parse_args
from archpeek.modules.keepers.previewer import ArchiveFormat


def test_parse_args_defaults(tmp_path) -> None:
    args = parse_args([str(tmp_path)])
    assert args.path == str(tmp_path)
    assert args.chunk_size == 64
    assert not args.legacy_long_names
    assert args.format is None


def test_parse_args_without_path_prints_help(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        parse_args([])
    assert excinfo.value.code == 0
    assert "usage:" in capsys.readouterr().out


def test_parse_args_rejects_bad_chunk_size(tmp_path) -> None:
    with pytest.raises(SystemExit):
        parse_args([str(tmp_path), "--chunk-size", "0"])


def test_tree_output_and_success_exit(archive_dir, capsys) -> None:
    code = main.main([str(archive_dir / "sample.tar.gz")])
    out = capsys.readouterr().out
    assert code == 0
    assert "readme.md" in out
    assert "[*] Previewing sample.tar.gz as tar.gz" in out


def test_json_output(archive_dir, capsys) -> None:
    code = main.main([str(archive_dir / "sample.zip"), "--json"])
    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert data["format"] == "zip"
    assert [n["name"] for n in data["tree"]] == ["docs", "src", "a.txt"]


def test_failure_exits_with_one(tmp_path, capsys) -> None:
    bad = tmp_path / "bad.rar"
    bad.write_bytes(b"nope")
    code = main.main([str(bad), "--quiet"])
    assert code == 1
    assert "[!] Error: Unable to preview bad.rar" in capsys.readouterr().out


def test_forced_format_and_flat_listing(tmp_path, sample_tar_bytes, capsys) -> None:
    odd = tmp_path / "blob.dat"
    odd.write_bytes(sample_tar_bytes)
    code = main.main([str(odd), "--format", "tar", "--flat", "--simple-output", "-q"])
    out = capsys.readouterr().out
    assert code == 0
    assert "  [FILE] a.txt (2.0 B)" in out


def test_log_file_receives_output(archive_dir, tmp_path) -> None:
    log = tmp_path / "run.log"
    stdout = sys.stdout
    main.main([str(archive_dir / "sample.tar"), "--log-file", str(log), "-q"])
    assert sys.stdout is stdout
    assert "a.txt" in log.read_text(encoding="utf-8")


def test_tui_mode_launches_app(archive_dir) -> None:
    with mock.patch("archpeek.tui.ArchivePreviewApp") as app_cls:
        assert main.main([str(archive_dir), "--tui"]) == 0
    app_cls.assert_called_once()
    assert app_cls.call_args.args == (str(archive_dir),)
    app_cls.return_value.run.assert_called_once()


def test_tui_mode_passes_parse_options(archive_dir) -> None:
    argv = [str(archive_dir / "x.bin"), "--tui", "--format", "tar", "--chunk-size", "8", "--legacy-long-names"]
    with mock.patch("archpeek.tui.ArchivePreviewApp") as app_cls:
        assert main.main(argv) == 0

    kwargs = app_cls.call_args.kwargs
    assert kwargs["fmt"] is ArchiveFormat.TAR
    assert kwargs["options"].chunk_size == 8 * 1024
    assert kwargs["options"].capture_long_names is False


def test_api_mode_starts_uvicorn() -> None:
    with mock.patch("uvicorn.run") as run:
        assert main.main(["--api"]) == 0
    assert run.call_args.args[0] == "archpeek.modules.api.api:app"
