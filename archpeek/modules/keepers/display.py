# display.py
# Console output for preview results

from rich.console import Console

from archpeek.modules.finders.archive_entry import ArchiveEntry
from archpeek.modules.formatters import format_mtime, human_readable_size, render_tree
from archpeek.modules.keepers.previewer import PreviewResult
from archpeek.modules.keepers.tree_builder import count_nodes


# split output to file and stdout
class Tee:
    """Duplicate stdout/stderr to a file and the console."""
    def __init__(self, *files):
        self.files = files
    def write(self, data):
        for f in self.files:
            f.write(data)
    def flush(self):
        for f in self.files:
            f.flush()
    def isatty(self):
        return False


#----- flat entry line
def format_entry_line(entry: ArchiveEntry, show_details=True):
    """
    Format an ArchiveEntry for display, similar to ls -l output.

    Args:
        entry: ArchiveEntry from any parser
        show_details: Include size and date columns

    Returns:
        Formatted string for display
    """
    if show_details:
        # 2024-01-15 10:30      1.2 KB  dir/file.txt
        size_str = ("-" if entry.is_directory else human_readable_size(entry.uncompressed_size)).rjust(10)
        return f"  {format_mtime(entry.modification_date)}  {size_str}  {entry.path}"
    if entry.is_directory:
        return f"  [DIR]  {entry.path}"
    return f"  [FILE] {entry.path} ({human_readable_size(entry.uncompressed_size)})"


# --- preview
def display_preview_result(result: PreviewResult, flat=False, simple=False, verbose=False, console=None):
    """
    Display the results of a preview.

    Args:
        result: PreviewResult from preview_path
        flat: Print one line per entry instead of a tree
        simple: Drop size and date columns
        verbose: Show byte statistics
        console: rich Console to print to (a fresh one by default)
    """
    console = console or Console(highlight=False)

    if result.error:
        print(f"  [!] Error: {result.error}")
        return

    if verbose:
        print(f"\n  [Stats] Read: {human_readable_size(result.bytes_read)}", end="")
        if result.bytes_decompressed:
            print(f", inflated: {human_readable_size(result.bytes_decompressed)}", end="")
        print()
    dirs, files = count_nodes(result.tree)
    print(f"  [Stats] Entries: {result.entries_found} ({dirs} folders, {files} files)\n")

    if flat and result.entries:
        for entry in result.entries:
            print(format_entry_line(entry, show_details=not simple))
        return

    console.print(render_tree(result.tree, label=result.path, show_details=not simple))
