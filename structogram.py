"""
Node model of a structogram (Nassi-Shneiderman diagram).

A diagram is a chain of nodes linked through ``follow_element``. Compound
nodes hold further chains in their own fields (``true_child``, ``child``,
``cases`` ...). Nodes are frozen dataclasses; editing produces new nodes and
shares every untouched subtree with the previous tree.

The canonical, editable chain looks like this::

    InsertionPoint -> Task -> InsertionPoint -> Branch -> InsertionPoint -> EmptyMarker

The clean, exported form drops the markers and ids and ends chains with
``None``.
"""
import itertools
import uuid
from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple

from errors import MalformedConstructError


@dataclass(frozen=True)
class Node:
    id: Optional[str] = None

    # Fields holding nested chains, in traversal order
    chain_fields = ()


@dataclass(frozen=True)
class InsertionPoint(Node):
    follow_element: Optional[Node] = None


@dataclass(frozen=True)
class EmptyMarker(Node):
    pass


@dataclass(frozen=True)
class _Statement(Node):
    text: str = ""
    follow_element: Optional[Node] = None


@dataclass(frozen=True)
class Task(_Statement):
    pass


@dataclass(frozen=True)
class Input(_Statement):
    pass


@dataclass(frozen=True)
class Output(_Statement):
    pass


@dataclass(frozen=True)
class Branch(Node):
    text: str = ""
    true_child: Optional[Node] = None
    false_child: Optional[Node] = None
    column_widths: Optional[Tuple[float, ...]] = None
    follow_element: Optional[Node] = None

    chain_fields = ("true_child", "false_child")


@dataclass(frozen=True)
class CaseLabel(Node):
    # follow_element is the head of the case body
    text: str = ""
    follow_element: Optional[Node] = None


@dataclass(frozen=True)
class Switch(Node):
    text: str = ""
    cases: Tuple[CaseLabel, ...] = ()
    default_enabled: bool = False
    default_case: Optional[CaseLabel] = None
    column_widths: Optional[Tuple[float, ...]] = None
    follow_element: Optional[Node] = None

    @property
    def column_count(self):
        return len(self.cases) + (1 if self.default_enabled else 0)


@dataclass(frozen=True)
class _Loop(Node):
    text: str = ""
    child: Optional[Node] = None
    follow_element: Optional[Node] = None

    chain_fields = ("child",)


@dataclass(frozen=True)
class PreTestLoop(_Loop):
    pass


@dataclass(frozen=True)
class CountLoop(_Loop):
    pass


@dataclass(frozen=True)
class PostTestLoop(_Loop):
    pass


@dataclass(frozen=True)
class Parameter:
    position: str = "0"
    name: str = ""


@dataclass(frozen=True)
class FunctionDef(Node):
    text: str = ""
    parameters: Tuple[Parameter, ...] = ()
    child: Optional[Node] = None
    follow_element: Optional[Node] = None

    chain_fields = ("child",)


@dataclass(frozen=True)
class TryCatch(Node):
    text: str = ""
    try_child: Optional[Node] = None
    catch_child: Optional[Node] = None
    follow_element: Optional[Node] = None

    chain_fields = ("try_child", "catch_child")


# Type tags of the JSON exchange format
TYPE_NAMES = {
    InsertionPoint: "InsertNode",
    EmptyMarker: "Placeholder",
    Task: "TaskNode",
    Input: "InputNode",
    Output: "OutputNode",
    Branch: "BranchNode",
    Switch: "CaseNode",
    CaseLabel: "InsertCase",
    PreTestLoop: "HeadLoopNode",
    CountLoop: "CountLoopNode",
    PostTestLoop: "FootLoopNode",
    FunctionDef: "FunctionNode",
    TryCatch: "TryCatchNode",
}
NODE_TYPES = {name: cls for cls, name in TYPE_NAMES.items()}

JSON_KEYS = {
    "follow_element": "followElement",
    "true_child": "trueChild",
    "false_child": "falseChild",
    "child": "child",
    "try_child": "tryChild",
    "catch_child": "catchChild",
}


class NodeIds:
    """Identifier source scoped to one parse or edit call."""

    def __init__(self, prefix="n"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self):
        return f"{self.prefix}{next(self._counter)}"

    @classmethod
    def unique(cls, prefix="__ed_"):
        # Random prefix so ids never collide with ids of an existing tree
        return cls(f"{prefix}{uuid.uuid4().hex[:8]}_")


def is_marker(node):
    return isinstance(node, (InsertionPoint, EmptyMarker))


def is_content(node):
    return node is not None and not is_marker(node)


def has_text(node_or_cls):
    cls = node_or_cls if isinstance(node_or_cls, type) else type(node_or_cls)
    return any(f.name == "text" for f in fields(cls))


def iter_chain(node):
    """Iterate over a chain by following ``follow_element`` links."""
    while node is not None:
        yield node
        node = getattr(node, "follow_element", None)


def chain_has_content(node):
    return any(is_content(item) for item in iter_chain(node))


def child_slots(node):
    """Yield ``(field, index, child)`` for every structural link of a node."""
    follow = getattr(node, "follow_element", None)
    if follow is not None:
        yield "follow_element", None, follow
    for name in node.chain_fields:
        child = getattr(node, name)
        if child is not None:
            yield name, None, child
    if isinstance(node, Switch):
        for index, case in enumerate(node.cases):
            yield "cases", index, case
        if node.default_case is not None:
            yield "default_case", None, node.default_case


def with_slot(node, field, index, value):
    """Return a copy of ``node`` whose slot ``field[index]`` holds ``value``."""
    if field == "cases":
        cases = list(node.cases)
        cases[index] = value
        return replace(node, cases=tuple(cases))
    return replace(node, **{field: value})


def make_chain(nodes=(), ids=None):
    """Link content nodes into a canonical chain with insertion points."""
    new_id = ids or (lambda: None)
    tail = InsertionPoint(id=new_id(), follow_element=EmptyMarker())
    for node in reversed(list(nodes)):
        tail = InsertionPoint(id=new_id(), follow_element=replace(node, follow_element=tail))
    return tail


def tree_to_json(node):
    """Convert a tree to the JSON exchange structure (dicts and lists)."""
    if node is None:
        return None
    result = None
    for item in reversed(list(iter_chain(node))):
        data = {"type": TYPE_NAMES[type(item)]}
        if item.id is not None:
            data["id"] = item.id
        if has_text(item):
            data["text"] = item.text
        for name in item.chain_fields:
            data[JSON_KEYS[name]] = tree_to_json(getattr(item, name))
        if isinstance(item, Switch):
            data["defaultOn"] = item.default_enabled
            data["defaultNode"] = tree_to_json(item.default_case)
            data["cases"] = [tree_to_json(case) for case in item.cases]
        if isinstance(item, FunctionDef):
            data["parameters"] = [{"pos": p.position, "parName": p.name} for p in item.parameters]
        if isinstance(item, (Branch, Switch)) and item.column_widths is not None:
            data["columnWidths"] = list(item.column_widths)
        if not isinstance(item, EmptyMarker):
            data["followElement"] = result
        result = data
    return result


def tree_from_json(data):
    """Build a tree from the JSON exchange structure.

    Accepts both the clean form (no markers, ``null`` links) and the
    editable form. Raises MalformedConstructError for unknown node types.
    """
    items = []
    while data is not None:
        if not isinstance(data, dict):
            raise MalformedConstructError(f"Expected a node object, got {type(data).__name__}")
        items.append(data)
        data = data.get("followElement")
    node = None
    for item in reversed(items):
        node = _node_from_json(item, node)
    return node


def _json_list(data, key):
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedConstructError(f"{key} must be a list, got {type(value).__name__}")
    return value


def _node_from_json(data, follow):
    type_name = data.get("type")
    cls = NODE_TYPES.get(type_name)
    if cls is None:
        raise MalformedConstructError(f"Unknown node type: {type_name!r}")
    if cls is EmptyMarker:
        return EmptyMarker(id=data.get("id"))

    kwargs = {"id": data.get("id"), "follow_element": follow}
    if has_text(cls):
        kwargs["text"] = str(data.get("text") or "")
    for name in cls.chain_fields:
        kwargs[name] = tree_from_json(data.get(JSON_KEYS[name]))

    if cls is Switch:
        cases = tuple(tree_from_json(case) for case in _json_list(data, "cases"))
        default_case = tree_from_json(data.get("defaultNode"))
        for case in cases + (default_case,):
            if case is not None and not isinstance(case, CaseLabel):
                raise MalformedConstructError(f"Switch case must be InsertCase, got {TYPE_NAMES[type(case)]}")
        kwargs.update(cases=cases, default_enabled=bool(data.get("defaultOn")), default_case=default_case)
    if cls is FunctionDef:
        parameters = []
        for p in _json_list(data, "parameters"):
            if not isinstance(p, dict):
                raise MalformedConstructError(f"Parameter must be an object, got {type(p).__name__}")
            parameters.append(Parameter(position=str(p.get("pos", "")), name=str(p.get("parName", ""))))
        kwargs["parameters"] = tuple(parameters)
    if cls in (Branch, Switch):
        widths = _json_list(data, "columnWidths")
        for w in widths:
            # bool is an int subclass but no width
            if isinstance(w, bool) or not isinstance(w, (int, float)):
                raise MalformedConstructError(f"Column width must be a number, got {w!r}")
        kwargs["column_widths"] = tuple(float(w) for w in widths) or None
    return cls(**kwargs)
