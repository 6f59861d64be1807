from .formatters import format_mtime, human_readable_size, node_text, render_tree

__all__ = ["format_mtime", "human_readable_size", "node_text", "render_tree"]
