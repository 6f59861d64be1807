"""Pytest bootstrap for local source imports.

The ``pytest`` console script can run with a sys.path that excludes the
repository root. Ensure ``import archpeek`` resolves to the local package
and ``import archive_builders`` to the helpers beside this file.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parent.parent
TESTS_DIR = Path(__file__).resolve().parent

for path in (str(PROJECT_ROOT), str(TESTS_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)

import archive_builders  # noqa: E402


@pytest.fixture
def sample_tar_bytes() -> bytes:
    return archive_builders.make_tar({
        "docs/": None,
        "docs/readme.md": b"# hi\n",
        "src/main.py": b"print('x')\n",
        "a.txt": b"hi",
    })


@pytest.fixture
def archive_dir(tmp_path, sample_tar_bytes):
    """A folder holding the same small tree in every supported format."""
    members = {
        "docs/": None,
        "docs/readme.md": b"# hi\n",
        "src/main.py": b"print('x')\n",
        "a.txt": b"hi",
    }
    (tmp_path / "sample.zip").write_bytes(archive_builders.make_zip(members))
    (tmp_path / "sample.tar").write_bytes(sample_tar_bytes)
    (tmp_path / "sample.tar.gz").write_bytes(archive_builders.gzip_bytes(sample_tar_bytes))
    (tmp_path / "sample.tar.bz2").write_bytes(archive_builders.bz2_bytes(sample_tar_bytes))
    (tmp_path / "sample.rar").write_bytes(archive_builders.make_rar5([
        archive_builders.Rar5File("docs/", 0, is_dir=True),
        archive_builders.Rar5File("docs/readme.md", 5),
        archive_builders.Rar5File("src/main.py", 11),
        archive_builders.Rar5File("a.txt", 2),
    ]))
    return tmp_path
