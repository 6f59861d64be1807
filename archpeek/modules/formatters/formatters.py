
#========= FORMATTER
def human_readable_size(size):
    if size is None:
        return "-"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"


#========= FORMATTER
def format_mtime(value) -> str:
    """Format a datetime to a readable string, or a placeholder when unknown."""
    if value is None:
        return "----.--.-- --:--"
    return value.strftime("%Y-%m-%d %H:%M")


#========= FORMATTER
def render_tree(nodes, label: str = "", show_details: bool = True):
    """
    Build a rich Tree from TreeNodes for console or TUI output.

    Args:
        nodes: Top-level TreeNode list
        label: Text of the root label (usually the archive name)
        show_details: Append size and date to file labels

    Returns:
        rich.tree.Tree
    """
    from rich.text import Text
    from rich.tree import Tree

    root = Tree(Text(label or ".", style="bold"), guide_style="dim")
    _add_children(root, nodes, show_details)
    return root


def node_text(node, show_details: bool = True):
    from rich.text import Text

    if node.is_directory:
        text = Text(f"{node.name}/", style="bold blue")
    else:
        text = Text(node.name)
    if show_details and not node.is_directory:
        text.append(f"  {human_readable_size(node.size)}", style="green")
    if show_details and node.modification_date is not None:
        text.append(f"  {format_mtime(node.modification_date)}", style="dim")
    return text


def _add_children(branch, nodes, show_details):
    for node in nodes:
        child = branch.add(node_text(node, show_details))
        if node.children:
            _add_children(child, node.children, show_details)
