"""
Serialize a structogram tree back to pseudocode text.
Inverse of pseudocode_parser.parse_pseudocode.
"""
from decimal import Decimal

from pseudocode_parser import resolve_keywords
from settings import INDENT_UNIT
from structogram import (
    Branch,
    CaseLabel,
    CountLoop,
    EmptyMarker,
    FunctionDef,
    Input,
    InsertionPoint,
    Output,
    PostTestLoop,
    PreTestLoop,
    Switch,
    Task,
    TryCatch,
    iter_chain,
)

INDENT = " " * INDENT_UNIT


def tree_to_pseudocode(tree, keywords=None):
    """Convert a tree (editable or clean form) to pseudocode."""
    lines = []
    write_chain(tree, 0, lines, resolve_keywords(keywords))
    return "\n".join(lines)


def format_width(width):
    # Fixed point, so the parser reads it back (no "1e-05")
    return format(Decimal(repr(float(width))), "f")


def column_width_suffix(node):
    if node.column_widths:
        return " [" + ", ".join(format_width(w) for w in node.column_widths) + "]"
    return ""


def write_chain(node, level, lines, kw):
    for item in iter_chain(node):
        write_node(item, level, lines, kw)


def write_node(node, level, lines, kw):
    ind = INDENT * level

    if isinstance(node, (InsertionPoint, EmptyMarker)):
        return
    if isinstance(node, Task):
        lines.append(ind + node.text)
    elif isinstance(node, Input):
        lines.append(f'{ind}{kw["input"]}("{node.text}")')
    elif isinstance(node, Output):
        lines.append(f'{ind}{kw["output"]}("{node.text}")')
    elif isinstance(node, Branch):
        lines.append(f"{ind}{kw['if']} {node.text}{column_width_suffix(node)}:")
        write_chain(node.true_child, level + 1, lines, kw)
        lines.append(f"{ind}{kw['else']}:")
        write_chain(node.false_child, level + 1, lines, kw)
    elif isinstance(node, Switch):
        lines.append(f"{ind}{kw['switch']} {node.text}{column_width_suffix(node)}:")
        for case in node.cases:
            lines.append(f"{ind}{INDENT}{kw['case']} {case.text}:")
            write_chain(case.follow_element, level + 2, lines, kw)
        if node.default_enabled and node.default_case is not None:
            lines.append(f"{ind}{INDENT}{kw['else']}:")
            write_chain(node.default_case.follow_element, level + 2, lines, kw)
    elif isinstance(node, PreTestLoop):
        lines.append(f"{ind}{kw['repeat']} {kw['while']} {node.text}:")
        write_chain(node.child, level + 1, lines, kw)
    elif isinstance(node, CountLoop):
        lines.append(f"{ind}{kw['repeat']} {kw['for']} {node.text}:")
        write_chain(node.child, level + 1, lines, kw)
    elif isinstance(node, PostTestLoop):
        lines.append(f"{ind}{kw['repeat']}:")
        write_chain(node.child, level + 1, lines, kw)
        lines.append(f"{ind}{kw['while']} {node.text}")
    elif isinstance(node, FunctionDef):
        params = ", ".join(p.name for p in node.parameters)
        lines.append(f"{ind}{kw['function']} {node.text}({params}):")
        write_chain(node.child, level + 1, lines, kw)
    elif isinstance(node, TryCatch):
        lines.append(f"{ind}{kw['try']}:")
        write_chain(node.try_child, level + 1, lines, kw)
        lines.append(f"{ind}{kw['catch']} {node.text}:")
        write_chain(node.catch_child, level + 1, lines, kw)
    elif isinstance(node, CaseLabel):
        # Case labels are written by their switch
        return
    else:
        raise TypeError(f"Unknown node type: {type(node).__name__}")
