from .tree_builder import TreeNode, build_tree, sort_tree, count_nodes, iter_tree_paths
from .previewer import (
    ArchiveFormat,
    ParseOptions,
    PreviewResult,
    detect_format,
    list_directory,
    parse_archive,
    preview_path,
)
