"""
Import Mermaid flowcharts (Programmablaufplan) as structograms.

The flowchart is read into a directed graph; structured control flow is
recovered from its topology (loops by back edges, decisions by the node
where both branches meet again) and emitted as structogram nodes.
"""
import logging
import re

import networkx as nx

from structogram import Branch, NodeIds, PreTestLoop, Task, make_chain
from svg_renderer import render_svg

logger = logging.getLogger(__name__)

YES_LABELS = ("ja", "yes", "true")
MAX_MERGE_SEARCH = 100


def convert_mermaid_to_nsd(mermaid_content, width=800, font_size=14):
    tree = mermaid_to_tree(mermaid_content)
    return render_svg(tree, width=width, font_size=font_size)


def mermaid_to_tree(mermaid_content):
    graph, start_node = parse_mermaid(mermaid_content)
    ids = NodeIds("__mermaid_")
    if not start_node:
        logger.warning("Mermaid flowchart has no nodes")
        return make_chain(ids=ids)
    nodes = build_structure(graph, start_node, None, set(), ids)
    return make_chain(nodes, ids=ids)


def parse_mermaid(content):
    G = nx.DiGraph()

    for line in content.split('\n'):
        line = line.strip()
        if not line or line.startswith('graph') or line.startswith('flowchart') or line.startswith('%%') \
                or line.startswith('subgraph') or line == 'end':
            continue

        if '-->' in line:
            left_part, right_part = [part.strip() for part in line.split('-->', 1)]

            left_id, left_label, left_type = parse_node_str(left_part)
            if left_id and left_id not in G:
                G.add_node(left_id, label=left_label, type=left_type)

            edge_label = ""
            if right_part.startswith('|'):
                end_pipe = right_part.find('|', 1)
                if end_pipe != -1:
                    edge_label = right_part[1:end_pipe]
                    right_part = right_part[end_pipe + 1:].strip()

            right_id, right_label, right_type = parse_node_str(right_part)
            if right_id and right_id not in G:
                G.add_node(right_id, label=right_label, type=right_type)

            if left_id and right_id:
                G.add_edge(left_id, right_id, label=edge_label)
        else:
            node_id, node_label, node_type = parse_node_str(line)
            if node_id and node_id not in G:
                G.add_node(node_id, label=node_label, type=node_type)

    start_node = None
    for node in G.nodes:
        if G.in_degree(node) == 0:
            start_node = node
            break
    if not start_node and len(G.nodes) > 0:
        start_node = list(G.nodes)[0]

    return G, start_node


# Bracket shapes in order of precedence: (opening, closing, node type)
SHAPES = [
    ('(["', '"])', 'terminal'),
    ('([', '])', 'terminal'),
    ('(("', '"))', 'terminal'),
    ('((', '))', 'terminal'),
    ('["', '"]', 'process'),
    ('[', ']', 'process'),
    ('{"', '"}', 'decision'),
    ('{', '}', 'decision'),
]


def parse_node_str(node_str):
    # id followed by an optional bracketed label; non-greedy inside the brackets
    m = re.match(r'(\w+)\s*(\(\[.*?\]\)|\(\(.*?\)\)|\[.*?\]|\{.*?\})?', node_str)
    if not m:
        return None, None, None
    node_id = m.group(1)
    rest = m.group(2)
    label = node_id
    node_type = 'process'

    if rest:
        for opening, closing, shape_type in SHAPES:
            if rest.startswith(opening) and rest.endswith(closing):
                label = rest[len(opening):-len(closing)]
                node_type = shape_type
                break
        if label.startswith('"') and label.endswith('"'):
            label = label[1:-1]

    return node_id, label, node_type


def build_structure(G, current_node, stop_node, visited, ids):
    """Content nodes for the path from ``current_node`` up to ``stop_node``."""
    nodes = []

    while current_node and current_node != stop_node:
        if current_node in visited:
            break
        visited.add(current_node)

        node_data = G.nodes[current_node]
        label = node_data.get('label', '').replace('"', '')
        successors = list(G.successors(current_node))

        if len(successors) == 2:
            s0, s1 = successors
            # A loop header has one successor leading back to it and one exit
            leads_back_0 = False if (stop_node and s0 == stop_node) else has_path_excluding(G, s0, current_node, stop_node)
            leads_back_1 = False if (stop_node and s1 == stop_node) else has_path_excluding(G, s1, current_node, stop_node)

            if leads_back_0 != leads_back_1:
                body_start, exit_node = (s0, s1) if leads_back_0 else (s1, s0)
                body = build_structure(G, body_start, current_node, visited.copy(), ids)
                nodes.append(PreTestLoop(id=ids(), text=label, child=make_chain(body, ids=ids)))
                current_node = exit_node
                continue

            merge_node = find_merge_node(G, s0, s1, stop_node)
            edge_label = G.get_edge_data(current_node, s0).get('label', '').lower()
            if any(word in edge_label for word in YES_LABELS):
                yes_node, no_node = s0, s1
            else:
                yes_node, no_node = s1, s0

            yes_nodes = build_structure(G, yes_node, merge_node, visited.copy(), ids)
            no_nodes = build_structure(G, no_node, merge_node, visited.copy(), ids)
            nodes.append(Branch(
                id=ids(),
                text=label,
                true_child=make_chain(yes_nodes, ids=ids),
                false_child=make_chain(no_nodes, ids=ids),
            ))
            current_node = merge_node

        elif len(successors) == 1:
            s0 = successors[0]
            # s0 == stop_node is the back edge of the enclosing loop
            if stop_node and s0 == stop_node:
                append_statement(nodes, node_data, label, ids)
                current_node = s0
            elif has_path_excluding(G, s0, current_node, stop_node):
                body = build_structure(G, s0, current_node, visited.copy(), ids)
                nodes.append(PreTestLoop(id=ids(), text=label, child=make_chain(body, ids=ids)))
                current_node = None
            else:
                append_statement(nodes, node_data, label, ids)
                current_node = s0
        else:
            append_statement(nodes, node_data, label, ids)
            current_node = None

    return nodes


def append_statement(nodes, node_data, label, ids):
    # Start/end terminals have no counterpart in a structogram
    if node_data.get('type') == 'terminal':
        return
    nodes.append(Task(id=ids(), text=label))


def has_path_excluding(G, source, target, exclude_node):
    if source == target:
        return True
    if exclude_node is None:
        return nx.has_path(G, source, target)

    # BFS that never enters exclude_node
    visited = {source, exclude_node}
    queue = [source]
    while queue:
        n = queue.pop(0)
        if n == target:
            return True
        for succ in G.successors(n):
            if succ not in visited:
                visited.add(succ)
                queue.append(succ)
    return False


def find_merge_node(G, node1, node2, stop_node=None):
    visited1 = set()
    queue1 = [node1]
    while queue1:
        n = queue1.pop(0)
        if n == stop_node:
            continue
        if n not in visited1:
            visited1.add(n)
            queue1.extend(G.successors(n))
            if len(visited1) > MAX_MERGE_SEARCH:
                break

    visited2 = set()
    queue2 = [node2]
    while queue2:
        n = queue2.pop(0)
        if n == stop_node:
            continue
        if n in visited1:
            return n
        if n not in visited2:
            visited2.add(n)
            queue2.extend(G.successors(n))
            if len(visited2) > MAX_MERGE_SEARCH:
                break
    return None
