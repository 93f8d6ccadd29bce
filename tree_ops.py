"""
Tree manipulation helpers for editing structograms.

All operations return a new tree and never modify their input. Nodes are
immutable, so only the nodes on the path from the root to the edited slot
are rebuilt; every other subtree is shared with the input tree.

Operations that cannot find their target return the input tree unchanged,
so callers can compare the result with ``is`` to detect a no-op.
"""
import logging
from dataclasses import replace

from pseudocode_parser import resolve_keywords
from structogram import (
    TYPE_NAMES,
    Branch,
    CaseLabel,
    CountLoop,
    EmptyMarker,
    FunctionDef,
    Input,
    InsertionPoint,
    NODE_TYPES,
    NodeIds,
    Output,
    Parameter,
    PostTestLoop,
    PreTestLoop,
    Switch,
    Task,
    TryCatch,
    child_slots,
    has_text,
    is_content,
    is_marker,
    iter_chain,
    make_chain,
    with_slot,
)

logger = logging.getLogger(__name__)

DEFAULT_CASE_TEXT = "Sonst"

# Variant class names accepted by create_node besides the exchange type tags
NODE_CLASSES = {cls.__name__: cls for cls in TYPE_NAMES}


def find_node(tree, node_id):
    """Find a node by id. Returns the node or None."""
    path = find_path(tree, node_id)
    return path[-1][3] if path else None


def find_parent_slot(tree, node_id):
    """Find the slot holding a node.

    Returns ``(parent, field, index)`` or None. The root has no parent slot,
    so ``(None, None, None)`` is returned for it.
    """
    path = find_path(tree, node_id)
    if not path:
        return None
    parent, field, index, _ = path[-1]
    return parent, field, index


def find_path(tree, node_id):
    """Depth-first search for ``node_id``.

    Returns the list of ``(parent, field, index, node)`` steps from the
    root down to the node, or None when it is not in the tree. Every node
    is visited at most once.
    """
    if tree is None or node_id is None:
        return None
    stack = [((None, None, None, tree),)]
    while stack:
        path = stack.pop()
        node = path[-1][3]
        if node.id == node_id:
            return list(path)
        slots = list(child_slots(node))
        for field, index, child in reversed(slots):
            stack.append(path + ((node, field, index, child),))
    return None


def rebuild_path(path, new_node):
    """Replace the last node of ``path`` and rebuild its ancestors."""
    for parent, field, index, _ in reversed(path):
        if parent is None:
            return new_node
        new_node = with_slot(parent, field, index, new_node)
    return new_node


def create_node(node_type, ids=None):
    """Create a new node template of the given type with placeholder text."""
    ids = ids or NodeIds.unique()
    cls = NODE_TYPES.get(node_type) or NODE_CLASSES.get(node_type)
    if cls is None or is_marker_type(cls):
        return Task(id=ids(), text=node_type)

    node_id = ids()
    if cls is Task:
        return Task(id=node_id, text="Anweisung")
    if cls is Input:
        return Input(id=node_id, text="Eingabe")
    if cls is Output:
        return Output(id=node_id, text="Ausgabe")
    if cls is Branch:
        return Branch(id=node_id, text="Bedingung", true_child=make_chain(ids=ids), false_child=make_chain(ids=ids))
    if cls is Switch:
        return Switch(
            id=node_id,
            text="Variable",
            cases=(
                CaseLabel(id=ids(), text="Fall 1", follow_element=make_chain(ids=ids)),
                CaseLabel(id=ids(), text="Fall 2", follow_element=make_chain(ids=ids)),
            ),
            default_enabled=True,
            default_case=CaseLabel(id=ids(), text=DEFAULT_CASE_TEXT, follow_element=make_chain(ids=ids)),
        )
    if cls is PreTestLoop:
        return PreTestLoop(id=node_id, text="Bedingung", child=make_chain(ids=ids))
    if cls is CountLoop:
        return CountLoop(id=node_id, text="i = 1 bis 10", child=make_chain(ids=ids))
    if cls is PostTestLoop:
        return PostTestLoop(id=node_id, text="Bedingung", child=make_chain(ids=ids))
    if cls is FunctionDef:
        return FunctionDef(
            id=node_id,
            text="funktion",
            parameters=(Parameter(position="0", name="param"),),
            child=make_chain(ids=ids),
        )
    if cls is TryCatch:
        return TryCatch(id=node_id, text="Exception e", try_child=make_chain(ids=ids), catch_child=make_chain(ids=ids))
    # CaseLabel on its own is not insertable into a chain
    return Task(id=node_id, text=node_type)


def is_marker_type(cls):
    return cls in (InsertionPoint, EmptyMarker)


def _splice(target, node, ids):
    """Return the replacement for insertion point ``target`` leading into ``node``."""
    if isinstance(target, InsertionPoint):
        return replace(target, follow_element=replace(node, follow_element=target.follow_element))
    # EmptyMarker: keep a chain end behind the new node
    tail = InsertionPoint(id=ids(), follow_element=target)
    return InsertionPoint(id=ids(), follow_element=replace(node, follow_element=tail))


def insert_at(tree, target_id, node_type, ids=None):
    """Insert a new node of ``node_type`` at an InsertionPoint/EmptyMarker.

    The new node takes over what followed the insertion point.
    """
    path = find_path(tree, target_id)
    if not path or not is_marker(path[-1][3]):
        logger.debug("insert_at: no insertion point %r", target_id)
        return tree
    ids = ids or NodeIds.unique()
    new_node = create_node(node_type, ids)
    return rebuild_path(path, _splice(path[-1][3], new_node, ids))


def _detach(path, ids):
    """Remove the node at the end of ``path``, reconnecting its chain."""
    parent, field, index, node = path[-1]
    if field == "cases":
        cases = parent.cases[:index] + parent.cases[index + 1:]
        widths = parent.column_widths
        updated = replace(parent, cases=cases)
        if widths is not None and len(widths) != updated.column_count:
            updated = replace(updated, column_widths=None)
        return rebuild_path(path[:-1], updated)
    if field == "default_case":
        widths = parent.column_widths
        if widths is not None and parent.default_enabled and len(widths) != len(parent.cases):
            widths = None
        empty_default = CaseLabel(id=ids(), text=node.text, follow_element=make_chain(ids=ids))
        return rebuild_path(
            path[:-1],
            replace(parent, default_enabled=False, default_case=empty_default, column_widths=widths),
        )
    follow = getattr(node, "follow_element", None) or EmptyMarker()
    return rebuild_path(path, follow)


def remove_node(tree, node_id, ids=None):
    """Remove a node and all of its children, reconnecting the chain."""
    path = find_path(tree, node_id)
    if not path or path[-1][0] is None or isinstance(path[-1][3], EmptyMarker):
        logger.debug("remove_node: no removable node %r", node_id)
        return tree
    return _detach(path, ids or NodeIds.unique())


def edit_text(tree, node_id, new_text):
    """Replace the text of a node."""
    path = find_path(tree, node_id)
    if not path or not has_text(path[-1][3]):
        logger.debug("edit_text: no text node %r", node_id)
        return tree
    return rebuild_path(path, replace(path[-1][3], text=new_text))


def move_node(tree, node_id, target_id, ids=None):
    """Move a content node to an InsertionPoint/EmptyMarker."""
    if node_id == target_id:
        return tree
    path = find_path(tree, node_id)
    if not path or path[-1][0] is None or not is_content(path[-1][3]) or isinstance(path[-1][3], CaseLabel):
        logger.debug("move_node: no movable node %r", node_id)
        return tree
    node = path[-1][3]
    ids = ids or NodeIds.unique()
    detached = _detach(path, ids)

    target_path = find_path(detached, target_id)
    if not target_path or not is_marker(target_path[-1][3]):
        # Unknown target or a target inside the moved subtree
        logger.debug("move_node: no insertion point %r outside of %r", target_id, node_id)
        return tree
    return rebuild_path(target_path, _splice(target_path[-1][3], node, ids))


def map_tree(node, fn):
    """Rebuild a tree bottom-up, passing every rebuilt node through ``fn``."""
    if node is None:
        return None
    result = None
    for item in reversed(list(iter_chain(node))):
        changes = {name: map_tree(getattr(item, name), fn) for name in item.chain_fields}
        if isinstance(item, Switch):
            changes["cases"] = tuple(map_tree(case, fn) for case in item.cases)
            changes["default_case"] = map_tree(item.default_case, fn)
        if not isinstance(item, EmptyMarker):
            changes["follow_element"] = result
        result = fn(replace(item, **changes))
    return result


def ensure_identifiers(tree, ids=None):
    """Give every node without an id a fresh one; existing ids stay."""
    ids = ids or NodeIds.unique()
    return map_tree(tree, lambda node: node if node.id is not None else replace(node, id=ids()))


def clear_identifiers(tree):
    return map_tree(tree, lambda node: replace(node, id=None))


def wrap_with_insertion_points(tree, keywords=None):
    """Normalize a tree so every sequence position has an InsertionPoint.

    Every chain becomes ``IP -> content -> IP -> ... -> IP -> EmptyMarker``.
    Existing markers keep their ids, repeated insertion points collapse into
    one, and missing chains become empty chains. Idempotent.
    """
    default_text = resolve_keywords(keywords)["default"]
    return _wrap_chain(tree, default_text)


def _wrap_chain(node, default_text):
    contents = []
    point_ids = [None]  # id of the insertion point in front of each position
    end_id = None
    for item in iter_chain(node):
        if isinstance(item, InsertionPoint):
            if point_ids[-1] is None:
                point_ids[-1] = item.id
        elif isinstance(item, EmptyMarker):
            end_id = item.id
        else:
            contents.append(_wrap_content(item, default_text))
            point_ids.append(None)

    tail = InsertionPoint(id=point_ids[-1], follow_element=EmptyMarker(id=end_id))
    for content, point_id in zip(reversed(contents), reversed(point_ids[:-1])):
        tail = InsertionPoint(id=point_id, follow_element=replace(content, follow_element=tail))
    return tail


def _wrap_case(case, default_text):
    if case is None:
        return CaseLabel(text=default_text, follow_element=make_chain())
    return replace(case, follow_element=_wrap_chain(case.follow_element, default_text))


def _wrap_content(node, default_text):
    changes = {name: _wrap_chain(getattr(node, name), default_text) for name in node.chain_fields}
    if isinstance(node, Switch):
        changes["cases"] = tuple(_wrap_case(case, default_text) for case in node.cases)
        changes["default_case"] = _wrap_case(node.default_case, default_text)
    return replace(node, **changes)


def strip_markers(tree):
    """Remove all InsertionPoint/EmptyMarker nodes and ids.

    Returns the clean, shareable tree (None for an empty diagram).
    """
    contents = [item for item in iter_chain(tree) if is_content(item)]
    result = None
    for item in reversed(contents):
        changes = {name: strip_markers(getattr(item, name)) for name in item.chain_fields}
        if isinstance(item, Switch):
            changes["cases"] = tuple(_strip_case(case) for case in item.cases)
            changes["default_case"] = _strip_case(item.default_case)
        result = replace(item, id=None, follow_element=result, **changes)
    return result


def _strip_case(case):
    if case is None:
        return None
    return replace(case, id=None, follow_element=strip_markers(case.follow_element))


def prepare_tree(tree, ids=None, keywords=None):
    """Normalize a tree into the editable form (markers and ids)."""
    return ensure_identifiers(wrap_with_insertion_points(tree, keywords), ids)


def collect_insertion_points(tree):
    """Ids of all InsertionPoint and EmptyMarker nodes (drop targets)."""
    return [node.id for node in walk(tree) if is_marker(node) and node.id is not None]


def collect_editable_nodes(tree):
    """``(id, type name, text)`` of every content node and case label."""
    return [
        (node.id, type(node).__name__, node.text)
        for node in walk(tree)
        if is_content(node)
    ]


def walk(tree):
    """Yield every node of the tree exactly once, depth first."""
    if tree is None:
        return
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(child for _, _, child in reversed(list(child_slots(node))))
