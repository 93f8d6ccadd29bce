import pytest

from layout_engine import FontMetrics, column_pixel_widths, layout, measure, wrap_text
from pseudocode_parser import parse_pseudocode
from structogram import Branch, EmptyMarker, Switch, Task, is_content, iter_chain, make_chain
from svg_renderer import render_svg
from tree_ops import ensure_identifiers, walk

PROGRAM = """
input("n")
if n > 0 [0.7, 0.3]:
    repeat while n > 0:
        n = n - 1
    output(n)
else:
    output("negative")
switch n:
    case 1:
        a
    case 2:
        b
        c
    else:
        d
function f(x, y):
    repeat:
        x = x + 1
    while x < y
try:
    risky()
catch Exception e:
    handle(e)
repeat for i = 1 to 10:
    s = s + i
"""

EPS = 1e-6


def nested_chains(node):
    """Chains drawn inside the box of ``node``."""
    chains = [getattr(node, name) for name in node.chain_fields]
    if isinstance(node, Switch):
        chains.extend(node.cases)
        if node.default_enabled:
            chains.append(node.default_case)
    return chains


def test_measure_matches_layout():
    metrics = FontMetrics(14)
    for source in (PROGRAM, "", "a", 'output("x")\nif x:\n    y'):
        tree = parse_pseudocode(source, "en")
        for width in (600, 300):
            assert measure(tree, metrics, width) == layout(tree, (0, 0), width, metrics).total_height


def test_simple_rows():
    tree = parse_pseudocode("a\nb", "en")
    result = layout(tree)
    first, second = [result.boxes[node.id] for node in iter_chain(tree) if is_content(node)]
    assert (first.x, first.y, first.width, first.height) == (0, 0, 600, 40)
    assert (second.y, second.height) == (40, 40)
    assert first.node_type == "Task"
    assert result.total_height == 80


def test_children_stay_inside_parent():
    tree = parse_pseudocode(PROGRAM, "en")
    result = layout(tree, (10, 20), 500)
    checked = 0
    for node in walk(tree):
        if node.id not in result.boxes or not is_content(node):
            continue
        outer = result.boxes[node.id]
        for chain in nested_chains(node):
            for item in iter_chain(chain):
                box = result.boxes.get(item.id)
                if box is None:
                    continue
                assert box.x >= outer.x - EPS
                assert box.x + box.width <= outer.x + outer.width + EPS
                assert box.y >= outer.y - EPS
                assert box.y + box.height <= outer.y + outer.height + EPS
                checked += 1
    assert checked > 20


def test_stretch():
    tree = parse_pseudocode("a\nb", "en")
    natural = layout(tree)
    stretched = layout(tree, available_height=200)
    assert stretched.total_height == 200
    first_task, last_task = [node for node in iter_chain(tree) if is_content(node)]
    assert stretched.boxes[first_task.id] == natural.boxes[first_task.id]
    assert stretched.boxes[last_task.id].height == 160


def test_stretch_exact_total():
    tree = parse_pseudocode(PROGRAM, "en")
    natural = measure(tree)
    for extra in (0.1, 13.37, 250):
        assert layout(tree, available_height=natural + extra).total_height == natural + extra
    # Less space than needed keeps the natural height
    assert layout(tree, available_height=natural / 2).total_height == natural


def test_stretch_empty_chain():
    tree = ensure_identifiers(make_chain())
    result = layout(tree, available_height=50)
    assert result.total_height == 50
    assert result.boxes[tree.id].height == 50


def test_stretch_without_absorber():
    assert layout(EmptyMarker(), available_height=50).total_height == 50
    assert layout(None, available_height=50).total_height == 50
    assert layout(EmptyMarker()).total_height == 0


def test_branch_columns_end_together():
    tree = parse_pseudocode("if x:\n    a\n    b\n    c\nelse:\n    d", "en")
    result = layout(tree)
    branch = next(node for node in walk(tree) if isinstance(node, Branch))
    outer = result.boxes[branch.id]
    bottom = outer.y + outer.height
    for chain in (branch.true_child, branch.false_child):
        last = [node for node in iter_chain(chain) if is_content(node)][-1]
        box = result.boxes[last.id]
        assert box.y + box.height == pytest.approx(bottom)
    d = [node for node in iter_chain(branch.false_child) if is_content(node)][0]
    assert result.boxes[d.id].height > 40


def test_column_widths_are_applied():
    tree = parse_pseudocode("if x [0.7, 0.3]:\n    a\nelse:\n    b", "en")
    result = layout(tree)
    a, b = [node for node in walk(tree) if isinstance(node, Task)]
    assert result.boxes[a.id].width == pytest.approx(420)
    assert result.boxes[b.id].x == pytest.approx(420)
    assert result.boxes[b.id].width == pytest.approx(180)


def test_column_pixel_widths():
    assert column_pixel_widths(600, 2, (0.7, 0.3)) == pytest.approx([420, 180])
    assert column_pixel_widths(600, 2, (-1, 0.5)) == [0, 300]
    assert column_pixel_widths(600, 2, (1, 1)) == [300, 300]
    assert column_pixel_widths(600, 3, (0.5, 0.5)) == [200, 200, 200]
    assert column_pixel_widths(600, 0) == []


def test_switch_columns():
    tree = parse_pseudocode("switch n:\n    case 1:\n        a\n    case 2:\n        b\n    else:\n        c", "en")
    result = layout(tree, width=300)
    switch = next(node for node in walk(tree) if isinstance(node, Switch))
    xs = [result.boxes[case.id].x for case in switch.cases + (switch.default_case,)]
    assert xs == [0, 100, 200]


def has_line(result, x1, y1, x2, y2):
    return any((line.x1, line.y1, line.x2, line.y2) == pytest.approx((x1, y1, x2, y2)) for line in result.lines)


def diagonals(result, top, bottom):
    return [
        line for line in result.lines
        if line.x1 != line.x2 and line.y1 == pytest.approx(top) and line.y2 == pytest.approx(bottom)
    ]


def test_branch_header_lines():
    # Condition row 40, slope 18.2 + 6
    result = layout(parse_pseudocode("if x [0.7, 0.3]:\n    a\nelse:\n    b", "en"))
    assert has_line(result, 0, 40, 420, 64.2)
    assert has_line(result, 600, 40, 420, 64.2)
    assert has_line(result, 420, 64.2, 420, 88.4)


def test_switch_header_lines_with_default():
    tree = parse_pseudocode("switch n:\n    case 1:\n        a\n    case 2:\n        b\n    else:\n        c", "en")
    result = layout(tree, width=300)
    assert has_line(result, 0, 40, 200, 64.2)
    assert has_line(result, 300, 40, 200, 64.2)
    assert has_line(result, 100, 40 + 12.1, 100, 64.2)
    assert len(diagonals(result, 40, 64.2)) == 2


def test_switch_header_lines_without_default():
    tree = parse_pseudocode("switch n:\n    case 1:\n        a\n    case 2:\n        b\n    case 3:\n        c", "en")
    result = layout(tree, width=300)
    assert has_line(result, 0, 40, 300, 64.2)
    assert len(diagonals(result, 40, 64.2)) == 1
    assert has_line(result, 100, 40 + 24.2 / 3, 100, 64.2)
    assert has_line(result, 200, 40 + 2 * 24.2 / 3, 200, 64.2)


def test_wrap_text():
    metrics = FontMetrics(14, char_width=10)
    assert wrap_text("eins zwei drei", 100, metrics) == ["eins zwei", "drei"]
    assert wrap_text("kurz", 100, metrics) == ["kurz"]
    assert wrap_text("a\nb", 100, metrics) == ["a", "b"]
    assert wrap_text("", 100, metrics) == [""]


def test_long_text_grows_row():
    tree = parse_pseudocode("x = " + "sehr langer text " * 20, "en")
    assert measure(tree, width=200) > 40


def test_branch_labels_follow_keywords():
    tree = parse_pseudocode("if x:\n    a", "en")
    german = [label.lines[0] for label in layout(tree).labels]
    english = [label.lines[0] for label in layout(tree, keywords="en").labels]
    assert "Wahr" in german
    assert "True" in english


def test_render_svg():
    tree = parse_pseudocode('input("a < b")\n' + PROGRAM, "en")
    svg = render_svg(tree, width=400)
    assert svg.startswith("<svg")
    assert svg.endswith("</svg>")
    assert "a &lt; b" in svg
    assert "f(x, y) {" in svg
    assert "Catch (Exception e)" in svg


def test_long_chain_layout():
    tree = parse_pseudocode("\n".join(f"x = {i}" for i in range(2000)), "en")
    assert measure(tree) == 2000 * 40


if __name__ == "__main__":
    test_measure_matches_layout()
    test_children_stay_inside_parent()
    test_stretch()
    test_branch_columns_end_together()
    print("All tests passed!")
