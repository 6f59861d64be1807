"""
archpeek TUI

A basic UI structure with:
- Header (docked top)
- Tree of the archive contents
- Status line with entry counts or the preview error
- Footer (docked bottom)
"""

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Header, Footer, Static, Tree
from textual import work
from pathlib import Path

from archpeek.modules.formatters import human_readable_size, node_text
from archpeek.modules.keepers.previewer import ArchiveFormat, ParseOptions, PreviewResult, preview_path
from archpeek.modules.keepers.tree_builder import count_nodes, use_system_collation


def populate_tree(tree: Tree, nodes) -> None:
    """Fill a textual Tree from TreeNodes, folders expandable and files as leaves."""
    tree.clear()

    def add(branch, children):
        for node in children:
            label = node_text(node)
            if node.is_directory:
                add(branch.add(label, data=node), node.children or [])
            else:
                branch.add_leaf(label, data=node)

    add(tree.root, nodes)
    tree.root.expand()


def status_text(result: PreviewResult) -> str:
    if result.error:
        return result.error
    dirs, files = count_nodes(result.tree)
    text = f"{result.format}: {result.entries_found} entries ({dirs} folders, {files} files)"
    if result.bytes_read:
        text += f", read {human_readable_size(result.bytes_read)}"
    return text


class ArchivePreviewApp(App):
    """archpeek - browse an archive's contents without extracting it."""

    DEFAULT_CSS = """
    #preview-tree {
        height: 1fr;
    }
    #preview-status {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """
    TITLE = "archpeek"
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "reload", "Reload"),
    ]

    _loading: bool = False

    def __init__(self, path, options: ParseOptions = None, fmt: ArchiveFormat = None):
        super().__init__()
        self.archive_path = Path(path)
        self.parse_options = options
        self.archive_format = fmt
        self.preview_result: PreviewResult = None

    def compose(self) -> ComposeResult:
        """Compose the UI layout."""
        yield Header()
        with Vertical(id="main-content"):
            yield Tree(self.archive_path.name or str(self.archive_path), id="preview-tree")
            yield Static("Loading...", id="preview-status")
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = str(self.archive_path)
        self.load_preview()

    def action_reload(self) -> None:
        if not self._loading:
            self.load_preview()

    @work(exclusive=True, thread=True)
    def load_preview(self) -> None:
        """Worker that parses the archive off the UI thread."""
        self._loading = True
        try:
            options = self.parse_options or ParseOptions()
            result = preview_path(self.archive_path, fmt=self.archive_format, options=options)
            self.call_from_thread(self.show_result, result)
        finally:
            self._loading = False

    def show_result(self, result: PreviewResult) -> None:
        self.preview_result = result
        tree = self.query_one("#preview-tree", Tree)
        status = self.query_one("#preview-status", Static)
        populate_tree(tree, result.tree)
        status.update(status_text(result))


if __name__ == "__main__":
    import sys
    use_system_collation()
    ArchivePreviewApp(sys.argv[1] if len(sys.argv) > 1 else ".").run()
