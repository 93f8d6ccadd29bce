"""
Convert a structogram tree to plain-text source code.

Supported languages: "python", "java", "javascript". Each language is a
template table; adding a language means adding a table to TRANSLATIONS.
"""
import logging

from errors import UnsupportedLanguageError
from settings import DEFAULT_TARGET_LANGUAGE, INDENT_UNIT
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
    chain_has_content,
    iter_chain,
)

logger = logging.getLogger(__name__)

TRANSLATIONS = {
    "python": {
        "Input": {"pre": "", "post": ' = input("Eingabe")\n'},
        "Output": {"pre": "print(", "post": ")\n"},
        "Task": {"pre": "", "post": "\n"},
        "Branch": {"pre": "if ", "post": ":\n", "between": "else:\n"},
        "TryCatch": {"pre": "try:\n", "between": "except ", "post": ":\n"},
        "CountLoop": {"pre": "for ", "post": ":\n"},
        "PreTestLoop": {"pre": "while ", "post": ":\n"},
        "PostTestLoop": {
            "prepre": "while True:\n",
            "pre": "    if not ",
            "post": ":\n        break\n",
        },
        "FunctionDef": {"pre": "def ", "between": "(", "post": "):\n"},
        "CaseLabel": {
            "pre_first": "if ",
            "pre_normal": "elif ",
            "pre_default": "else",
            "post": ":\n",
        },
        "left_bracket": "",
        "right_bracket": "",
        "pseudo_switch": True,
        "native_foot_loop": False,
        "empty_body": "pass\n",
        "default_break": False,
    },
    "java": {
        "Input": {"pre": "", "post": " = System.console().readLine();\n"},
        "Output": {"pre": "System.out.println(", "post": ");\n"},
        "Task": {"pre": "", "post": ";\n"},
        "Branch": {"pre": "if (", "post": ")", "between": "} else {\n"},
        "TryCatch": {"pre": "try", "between": "catch (", "post": ")"},
        "CountLoop": {"pre": "for (", "post": ")"},
        "PreTestLoop": {"pre": "while (", "post": ")"},
        "PostTestLoop": {"prepre": "do", "pre": "while (", "post": ");\n"},
        "FunctionDef": {"pre": "public void ", "between": "(", "post": ")"},
        "Switch": {"pre": "switch (", "post": ")"},
        "CaseLabel": {
            "pre_normal": "case ",
            "pre_default": "default",
            "post": ":\n",
            "postpost": "break;\n",
        },
        "left_bracket": "{",
        "right_bracket": "}",
        "pseudo_switch": False,
        "native_foot_loop": True,
        "empty_body": "",
        "default_break": True,
    },
    "javascript": {
        "Input": {"pre": "", "post": ' = prompt("Eingabe");\n'},
        "Output": {"pre": "console.log(", "post": ");\n"},
        "Task": {"pre": "", "post": ";\n"},
        "Branch": {"pre": "if (", "post": ")", "between": "} else {\n"},
        "TryCatch": {"pre": "try", "between": "catch (", "post": ")"},
        "CountLoop": {"pre": "for (", "post": ")"},
        "PreTestLoop": {"pre": "while (", "post": ")"},
        "PostTestLoop": {"prepre": "do", "pre": "while (", "post": ");\n"},
        "FunctionDef": {"pre": "function ", "between": "(", "post": ")"},
        "Switch": {"pre": "switch (", "post": ")"},
        "CaseLabel": {
            "pre_normal": "case ",
            "pre_default": "default",
            "post": ":\n",
            "postpost": "break;\n",
        },
        "left_bracket": "{",
        "right_bracket": "}",
        "pseudo_switch": False,
        "native_foot_loop": True,
        "empty_body": "",
        "default_break": False,
    },
}


def indent(level):
    return " " * (INDENT_UNIT * level)


def generate_code(tree, lang=DEFAULT_TARGET_LANGUAGE):
    """Generate source code for ``lang`` from a tree."""
    key = lang.lower()
    table = TRANSLATIONS.get(key)
    if table is None:
        raise UnsupportedLanguageError(lang, TRANSLATIONS)
    logger.debug("Generating %s code", key)
    return CodeGenerator(table).generate(tree)


class CodeGenerator:
    def __init__(self, table):
        self.t = table

    def generate(self, tree):
        lines = []
        self.transform_chain(tree, 0, lines)
        return "".join(lines)

    def open_block(self):
        return " " + self.t["left_bracket"] + "\n" if self.t["left_bracket"] else ""

    def close_block(self, level, lines):
        if self.t["right_bracket"]:
            lines.append(indent(level) + self.t["right_bracket"] + "\n")

    def transform_body(self, node, level, lines):
        if chain_has_content(node):
            self.transform_chain(node, level, lines)
        elif self.t["empty_body"]:
            lines.append(indent(level) + self.t["empty_body"])

    def transform_chain(self, node, level, lines):
        for item in iter_chain(node):
            self.transform(item, level, lines)

    def transform(self, node, level, lines):
        t = self.t
        ind = indent(level)
        text = node.text if hasattr(node, "text") else ""

        if isinstance(node, (InsertionPoint, EmptyMarker)):
            return

        if isinstance(node, (Task, Input, Output)):
            entry = t[type(node).__name__]
            lines.append(ind + entry["pre"] + text + entry["post"])

        elif isinstance(node, Branch):
            entry = t["Branch"]
            lines.append(ind + entry["pre"] + text + entry["post"] + self.open_block())
            self.transform_body(node.true_child, level + 1, lines)
            if chain_has_content(node.false_child):
                lines.append(ind + entry["between"])
                self.transform_chain(node.false_child, level + 1, lines)
            self.close_block(level, lines)

        elif isinstance(node, (PreTestLoop, CountLoop)):
            entry = t[type(node).__name__]
            lines.append(ind + entry["pre"] + text + entry["post"] + self.open_block())
            self.transform_body(node.child, level + 1, lines)
            self.close_block(level, lines)

        elif isinstance(node, PostTestLoop):
            self.transform_foot_loop(node, level, lines)

        elif isinstance(node, FunctionDef):
            entry = t["FunctionDef"]
            params = ", ".join(p.name for p in node.parameters)
            lines.append(ind + entry["pre"] + text + entry["between"] + params + entry["post"] + self.open_block())
            self.transform_body(node.child, level + 1, lines)
            self.close_block(level, lines)

        elif isinstance(node, TryCatch):
            entry = t["TryCatch"]
            lines.append(ind + entry["pre"] + self.open_block())
            self.transform_body(node.try_child, level + 1, lines)
            closing = t["right_bracket"] + " " if t["right_bracket"] else ""
            lines.append(ind + closing + entry["between"] + text + entry["post"] + self.open_block())
            self.transform_body(node.catch_child, level + 1, lines)
            self.close_block(level, lines)

        elif isinstance(node, Switch):
            if t["pseudo_switch"]:
                self.transform_pseudo_switch(node, level, lines)
            else:
                self.transform_native_switch(node, level, lines)

        elif isinstance(node, CaseLabel):
            # Case labels are emitted by their switch
            return

        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    def transform_foot_loop(self, node, level, lines):
        t = self.t
        entry = t["PostTestLoop"]
        ind = indent(level)
        lines.append(ind + entry["prepre"] + self.open_block())
        self.transform_chain(node.child, level + 1, lines)
        if t["native_foot_loop"]:
            # do { ... } while (cond);
            closing = t["right_bracket"] + " " if t["right_bracket"] else ""
            lines.append(ind + closing + entry["pre"] + node.text + entry["post"])
        else:
            # Infinite loop with a conditional break on the negated condition
            lines.append(ind + entry["pre"] + node.text + entry["post"])

    def transform_pseudo_switch(self, node, level, lines):
        entry = self.t["CaseLabel"]
        ind = indent(level)
        first = True
        for case in node.cases:
            prefix = entry["pre_first"] if first else entry["pre_normal"]
            lines.append(ind + prefix + node.text + " == " + case.text + entry["post"])
            self.transform_body(case.follow_element, level + 1, lines)
            first = False
        if node.default_enabled and node.default_case is not None:
            if first:
                # Without any case the default body runs unconditionally
                self.transform_chain(node.default_case.follow_element, level, lines)
            else:
                lines.append(ind + entry["pre_default"] + entry["post"])
                self.transform_body(node.default_case.follow_element, level + 1, lines)

    def transform_native_switch(self, node, level, lines):
        t = self.t
        entry = t["CaseLabel"]
        lines.append(indent(level) + t["Switch"]["pre"] + node.text + t["Switch"]["post"] + self.open_block())
        for case in node.cases:
            lines.append(indent(level + 1) + entry["pre_normal"] + case.text + entry["post"])
            self.transform_chain(case.follow_element, level + 2, lines)
            if entry["postpost"]:
                lines.append(indent(level + 2) + entry["postpost"])
        if node.default_enabled and node.default_case is not None:
            lines.append(indent(level + 1) + entry["pre_default"] + entry["post"])
            self.transform_chain(node.default_case.follow_element, level + 2, lines)
            if t["default_break"]:
                lines.append(indent(level + 2) + entry["postpost"])
        self.close_block(level, lines)
