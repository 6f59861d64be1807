"""
archpeek TUI Package.

A Textual-based terminal user interface for browsing archive contents.
"""

from .app import ArchivePreviewApp

__all__ = ["ArchivePreviewApp"]
