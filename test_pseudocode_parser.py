import pytest

from errors import MalformedConstructError, UnknownKeywordSetError
from pseudocode_parser import (
    Block,
    PseudocodeParser,
    extract_column_widths,
    parse_pseudocode,
    resolve_keywords,
    tokenize,
)
from structogram import (
    Branch,
    CountLoop,
    EmptyMarker,
    FunctionDef,
    Input,
    InsertionPoint,
    NodeIds,
    Output,
    Parameter,
    PostTestLoop,
    PreTestLoop,
    Switch,
    Task,
    TryCatch,
    is_content,
    iter_chain,
)
from tree_ops import walk


def contents(chain):
    return [node for node in iter_chain(chain) if is_content(node)]


def assert_canonical(chain):
    items = list(iter_chain(chain))
    assert isinstance(items[-1], EmptyMarker)
    assert isinstance(items[-2], InsertionPoint)
    for i, item in enumerate(items[:-1]):
        if is_content(item):
            assert isinstance(items[i - 1], InsertionPoint)
            assert isinstance(items[i + 1], InsertionPoint)


def test_empty_input():
    tree = parse_pseudocode("")
    assert isinstance(tree, InsertionPoint)
    assert isinstance(tree.follow_element, EmptyMarker)
    assert contents(parse_pseudocode("\n   \n# nur ein Kommentar\n")) == []


def test_input_output():
    tree = parse_pseudocode('input("n")\noutput("n")', "en")
    nodes = contents(tree)
    assert [type(n) for n in nodes] == [Input, Output]
    assert [n.text for n in nodes] == ["n", "n"]
    assert_canonical(tree)


def test_input_without_quotes():
    nodes = contents(parse_pseudocode("eingabe(zahl)\nausgabe(zahl)"))
    assert [type(n) for n in nodes] == [Input, Output]
    assert nodes[0].text == "zahl"


def test_branch_merge():
    source = """
if x > 0:
    output("pos")
else:
    output("neg")
"""
    nodes = contents(parse_pseudocode(source, "en"))
    assert len(nodes) == 1
    branch = nodes[0]
    assert isinstance(branch, Branch)
    assert branch.text == "x > 0"
    assert [n.text for n in contents(branch.true_child)] == ["pos"]
    assert [n.text for n in contents(branch.false_child)] == ["neg"]
    assert_canonical(branch.true_child)
    assert_canonical(branch.false_child)


def test_branch_without_else():
    nodes = contents(parse_pseudocode("falls x > 0:\n    a = 1\nb = 2"))
    assert isinstance(nodes[0], Branch)
    assert contents(nodes[0].false_child) == []
    assert isinstance(nodes[1], Task)
    assert nodes[1].text == "b = 2"


def test_branch_column_widths():
    nodes = contents(parse_pseudocode("if ok [0.7, 0.3]:\n    a", "en"))
    assert nodes[0].text == "ok"
    assert nodes[0].column_widths == (0.7, 0.3)


def test_switch_column_widths():
    source = """
switch color [0.5, 0.25, 0.25]:
    case "red":
        stop
    case "green":
        go
    else:
        wait
"""
    switch = contents(parse_pseudocode(source, "en"))[0]
    assert isinstance(switch, Switch)
    assert switch.text == "color"
    assert switch.column_widths == (0.5, 0.25, 0.25)
    assert len(switch.column_widths) == len(switch.cases) + 1
    assert [case.text for case in switch.cases] == ["red", "green"]
    assert switch.default_enabled
    assert switch.default_case.text == "Default"
    assert [n.text for n in contents(switch.default_case.follow_element)] == ["wait"]


def test_switch_without_default():
    switch = contents(parse_pseudocode("unterscheide n:\n    fall 1:\n        a"))[0]
    assert not switch.default_enabled
    # A default case always exists, enabled or not
    assert switch.default_case.text == "Sonst"
    assert contents(switch.default_case.follow_element) == []


def test_loops():
    source = """
repeat for i = 1 to 10:
    output(i)
repeat while x > 0:
    x = x - 1
repeat:
    x = x + 1
while x < 5
"""
    count_loop, head_loop, foot_loop = contents(parse_pseudocode(source, "en"))
    assert isinstance(count_loop, CountLoop)
    assert count_loop.text == "i = 1 to 10"
    assert isinstance(head_loop, PreTestLoop)
    assert head_loop.text == "x > 0"
    assert isinstance(foot_loop, PostTestLoop)
    assert foot_loop.text == "x < 5"
    assert [n.text for n in contents(foot_loop.child)] == ["x = x + 1"]


def test_german_keywords():
    source = """
wiederhole für i = 1 bis 3:
    ausgabe(i)
wiederhole:
    i = i - 1
solange i > 0
"""
    nodes = contents(parse_pseudocode(source))
    assert [type(n) for n in nodes] == [CountLoop, PostTestLoop]


def test_repeat_without_condition_falls_back_to_task():
    nodes = contents(parse_pseudocode("repeat:\n    x = 1\nwhile y > 0:\n    z = 2", "en"))
    assert isinstance(nodes[0], Task)
    assert nodes[0].text == "repeat:"
    # "while ...:" ends with a colon, so it is not a loop condition
    assert isinstance(nodes[1], Task)


def test_try_catch():
    source = "try:\n    risky()\ncatch Exception e:\n    handle(e)"
    node = contents(parse_pseudocode(source, "en"))[0]
    assert isinstance(node, TryCatch)
    assert node.text == "Exception e"
    assert [n.text for n in contents(node.try_child)] == ["risky()"]
    assert [n.text for n in contents(node.catch_child)] == ["handle(e)"]


def test_function_parameters():
    node = contents(parse_pseudocode("funktion fakultaet(n, m):\n    ergebnis = 1"))[0]
    assert isinstance(node, FunctionDef)
    assert node.text == "fakultaet"
    assert node.parameters == (Parameter("0", "n"), Parameter("3", "m"))
    assert contents(parse_pseudocode("funktion leer():\n    x"))[0].parameters == ()


def test_unrecognized_lines_become_tasks():
    nodes = contents(parse_pseudocode("summe = a + b\nprint summe", "en"))
    assert [type(n) for n in nodes] == [Task, Task]
    assert nodes[1].text == "print summe"


def test_comments_and_tabs():
    source = "# Kommentar\nfalls x:\n\ta = 1\n\n\t# noch einer\n\tb = 2"
    branch = contents(parse_pseudocode(source))[0]
    assert [n.text for n in contents(branch.true_child)] == ["a = 1", "b = 2"]
    assert tokenize("\tx")[0].indent == 4


def test_uneven_indentation():
    branch = contents(parse_pseudocode("if x:\n  a = 1\n  b = 2", "en"))[0]
    assert [n.text for n in contents(branch.true_child)] == ["a = 1", "b = 2"]


def test_keywords_are_case_insensitive():
    nodes = contents(parse_pseudocode('IF x:\n    a\nELSE:\n    b\nOUTPUT("x")', "en"))
    assert [type(n) for n in nodes] == [Branch, Output]


def test_custom_keyword_map():
    nodes = contents(parse_pseudocode("wenn x > 1:\n    a\nsonst:\n    b", {"if": "wenn"}))
    assert isinstance(nodes[0], Branch)
    assert contents(nodes[0].false_child)[0].text == "b"


def test_keywords_are_escaped():
    nodes = contents(parse_pseudocode("?if x:\n    a\nif x:\n    b", {"if": "?if"}))
    assert isinstance(nodes[0], Branch)
    assert isinstance(nodes[1], Task)


def test_resolve_keywords():
    assert resolve_keywords()["if"] == "falls"
    assert resolve_keywords("EN")["if"] == "if"
    assert resolve_keywords({"if": "wenn"})["else"] == "sonst"
    with pytest.raises(UnknownKeywordSetError):
        resolve_keywords("fr")


def test_extract_column_widths():
    assert extract_column_widths("x > 0 [0.7, 0.3]") == ("x > 0", (0.7, 0.3))
    assert extract_column_widths("x > 0") == ("x > 0", None)
    assert extract_column_widths("x [0.5, ., 0.5]") == ("x", (0.5, 0.5))
    assert extract_column_widths("x [.]") == ("x", None)


def test_unique_ids_per_parse():
    tree = parse_pseudocode("a\nfalls b:\n    c\nsonst:\n    d")
    ids = [node.id for node in walk(tree) if not isinstance(node, EmptyMarker)]
    assert None not in ids
    assert len(ids) == len(set(ids))
    # Fresh generator per call
    assert parse_pseudocode("a").id == parse_pseudocode("a").id


def test_mismatched_partner_raises():
    parser = PseudocodeParser("en")
    parser.ids = NodeIds("t")
    with pytest.raises(MalformedConstructError):
        parser.build_try_catch(Block("try:", 0, []), Block("x = 1", 0, []))
    with pytest.raises(MalformedConstructError):
        parser.build_foot_loop(Block("repeat:", 0, []), Block("while x:", 0, []))


def test_long_program():
    source = "\n".join(f"x = {i}" for i in range(3000))
    tree = parse_pseudocode(source)
    assert len(contents(tree)) == 3000


if __name__ == "__main__":
    test_empty_input()
    test_input_output()
    test_branch_merge()
    test_switch_column_widths()
    test_loops()
    test_try_catch()
    test_custom_keyword_map()
    print("All tests passed!")
