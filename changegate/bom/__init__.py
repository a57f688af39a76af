"""Bill-of-materials graph: where-used, cycle checks, tree expansion."""

from .graph import BomValidation, detect_cycle, find_where_used, validate_bom_tree
from .tree import BomTreeNode, FlatBomItem, build_bom_tree, calculate_total_quantity, flatten_bom_tree

__all__ = [
    "BomTreeNode",
    "BomValidation",
    "FlatBomItem",
    "build_bom_tree",
    "calculate_total_quantity",
    "detect_cycle",
    "find_where_used",
    "flatten_bom_tree",
    "validate_bom_tree",
]
