"""
Parse indented pseudocode into a structogram tree.

Keywords are configurable via keyword maps (KEYWORDS_DE, KEYWORDS_EN).
German is the default. Syntax with English keywords::

    # Task - any plain statement
    result = 1

    input("number n")
    output("result")

    repeat for i = 1 to 10:
        ...
    repeat while x > 0:
        ...
    repeat:
        ...
    while answer != 0

    if x > 0 [0.7, 0.3]:
        ...
    else:
        ...

    switch color [0.4, 0.3, 0.3]:
        case "red":
            ...
        case "green":
            ...
        else:
            ...

    function factorial(n):
        ...

    try:
        ...
    catch Exception e:
        ...

Blank lines and lines starting with ``#`` are ignored. Anything that does
not match a construct becomes a Task with its literal text.
"""
import logging
import re
from collections import namedtuple

from errors import MalformedConstructError, UnknownKeywordSetError
from settings import DEFAULT_KEYWORD_SET, INDENT_UNIT
from structogram import (
    Branch,
    CaseLabel,
    CountLoop,
    FunctionDef,
    Input,
    NodeIds,
    Output,
    Parameter,
    PostTestLoop,
    PreTestLoop,
    Switch,
    Task,
    TryCatch,
    make_chain,
)

logger = logging.getLogger(__name__)

KEYWORDS_DE = {
    "if": "falls", "else": "sonst",
    "repeat": "wiederhole", "while": "solange", "for": "für",
    "switch": "unterscheide", "case": "fall",
    "function": "funktion",
    "try": "versuche", "catch": "fange",
    "input": "eingabe", "output": "ausgabe",
    "true": "Wahr", "false": "Falsch",
    "default": "Sonst",
}

KEYWORDS_EN = {
    "if": "if", "else": "else",
    "repeat": "repeat", "while": "while", "for": "for",
    "switch": "switch", "case": "case",
    "function": "function",
    "try": "try", "catch": "catch",
    "input": "input", "output": "output",
    "true": "True", "false": "False",
    "default": "Default",
}

KEYWORD_SETS = {"de": KEYWORDS_DE, "en": KEYWORDS_EN}

Line = namedtuple("Line", "text indent")
Block = namedtuple("Block", "text indent children")

COLUMN_WIDTHS_RE = re.compile(r"^(.*?)\s*\[([-0-9.,\s]+)\]\s*$")
QUOTED_RE = re.compile(r'^"(.*)"$')


def resolve_keywords(keywords=None):
    """Return a complete keyword map for a set name, a custom dict or None."""
    if keywords is None:
        keywords = DEFAULT_KEYWORD_SET
    if isinstance(keywords, str):
        try:
            return KEYWORD_SETS[keywords.lower()]
        except KeyError:
            raise UnknownKeywordSetError(keywords, KEYWORD_SETS) from None
    # Custom maps may leave out keywords; those fall back to the default set
    return {**KEYWORD_SETS[DEFAULT_KEYWORD_SET], **keywords}


class _Patterns:
    """Regular expressions for one keyword map."""

    def __init__(self, keywords):
        kw = {key: re.escape(value) for key, value in keywords.items()}
        flags = re.IGNORECASE

        self.try_block = re.compile(rf"^{kw['try']}\s*:$", flags)
        self.catch_prefix = re.compile(rf"^{kw['catch']}\s+", flags)
        self.if_prefix = re.compile(rf"^{kw['if']}\s+", flags)
        self.else_block = re.compile(rf"^{kw['else']}\s*:$", flags)
        self.repeat_block = re.compile(rf"^{kw['repeat']}\s*:$", flags)
        self.while_prefix = re.compile(rf"^{kw['while']}\s+", flags)
        self.count_loop = re.compile(rf"^{kw['repeat']}\s+{kw['for']}\s+(.+)\s*:$", flags)
        self.head_loop = re.compile(rf"^{kw['repeat']}\s+{kw['while']}\s+(.+)\s*:$", flags)
        self.function = re.compile(rf"^{kw['function']}\s+(\w+)\s*\(([^)]*)\)\s*:$", flags)
        self.switch = re.compile(rf"^{kw['switch']}\s+(.+)\s*:$", flags)
        self.case_label = re.compile(rf"^{kw['case']}\s+(.+)\s*:$", flags)
        self.input = re.compile(rf'^{kw["input"]}\s*\(\s*"?([^"]*)"?\s*\)$', flags)
        self.output = re.compile(rf'^{kw["output"]}\s*\(\s*"?([^"]*)"?\s*\)$', flags)

    def is_foot_condition(self, text):
        return bool(self.while_prefix.match(text)) and not text.endswith(":")


def tokenize(source):
    """Split source into non-blank, non-comment lines with their indent."""
    lines = []
    for raw in source.split("\n"):
        trimmed = raw.rstrip()
        if not trimmed or trimmed.lstrip().startswith("#"):
            continue
        expanded = raw.replace("\t", " " * INDENT_UNIT)
        indent = len(expanded) - len(expanded.lstrip())
        lines.append(Line(trimmed.strip(), indent))
    return lines


def group_blocks(lines, base_indent):
    """Group lines into blocks: a line at base_indent plus its deeper lines."""
    blocks = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.indent < base_indent:
            break
        if line.indent > base_indent:
            # Orphaned deeper line without a parent at this level
            i += 1
            continue
        children = []
        i += 1
        while i < len(lines) and lines[i].indent > base_indent:
            children.append(lines[i])
            i += 1
        blocks.append(Block(line.text, line.indent, children))
    return blocks


def strip_colon(text):
    return text[:-1].rstrip() if text.endswith(":") else text


def extract_column_widths(text):
    """Split ``"x > 0 [0.7, 0.3]"`` into ``("x > 0", (0.7, 0.3))``."""
    match = COLUMN_WIDTHS_RE.match(text)
    if not match:
        return text, None
    widths = []
    for token in match.group(2).split(","):
        try:
            widths.append(float(token.strip()))
        except ValueError:
            continue
    return match.group(1).strip(), tuple(widths) or None


def parse_pseudocode(source, keywords=None):
    """Parse pseudocode into a tree rooted at an InsertionPoint."""
    parser = PseudocodeParser(keywords)
    return parser.parse(source)


class PseudocodeParser:
    def __init__(self, keywords=None):
        self.keywords = resolve_keywords(keywords)
        self.patterns = _Patterns(self.keywords)

    def parse(self, source):
        self.ids = NodeIds("__pseudo_")
        lines = tokenize(source)
        logger.debug("Parsing %d pseudocode lines", len(lines))
        if not lines:
            return make_chain(ids=self.ids)
        base_indent = min(line.indent for line in lines)
        return self.parse_lines(lines, base_indent)

    def parse_lines(self, lines, base_indent):
        return self.build_chain(group_blocks(lines, base_indent))

    def parse_children(self, block):
        if not block.children:
            return make_chain(ids=self.ids)
        return self.parse_lines(block.children, min(line.indent for line in block.children))

    def build_chain(self, blocks):
        p = self.patterns

        # Mark second halves of pairs so they are never converted on their own
        consumed = [False] * len(blocks)
        for i in range(len(blocks) - 1):
            text, next_text = blocks[i].text, blocks[i + 1].text
            if p.try_block.match(text) and p.catch_prefix.match(next_text):
                consumed[i + 1] = True
            elif p.if_prefix.match(text) and p.else_block.match(next_text):
                consumed[i + 1] = True
            elif p.repeat_block.match(text) and p.is_foot_condition(next_text):
                consumed[i + 1] = True

        # Build from the end so every node can point at what follows it
        nodes = []
        for i in range(len(blocks) - 1, -1, -1):
            if consumed[i]:
                continue
            partner = blocks[i + 1] if i + 1 < len(blocks) and consumed[i + 1] else None
            nodes.append(self.build_node(blocks[i], partner))
        nodes.reverse()
        return make_chain(nodes, ids=self.ids)

    def build_node(self, block, partner=None):
        p = self.patterns
        text = block.text

        if p.try_block.match(text) and partner is not None:
            return self.build_try_catch(block, partner)
        if p.if_prefix.match(text):
            return self.build_branch(block, partner)
        if p.repeat_block.match(text) and partner is not None:
            return self.build_foot_loop(block, partner)

        match = p.count_loop.match(text)
        if match:
            return CountLoop(id=self.ids(), text=match.group(1).strip(), child=self.parse_children(block))

        match = p.head_loop.match(text)
        if match:
            return PreTestLoop(id=self.ids(), text=match.group(1).strip(), child=self.parse_children(block))

        match = p.function.match(text)
        if match:
            return self.build_function(block, match.group(1), match.group(2))

        match = p.switch.match(text)
        if match:
            return self.build_switch(block, match.group(1))

        match = p.input.match(text)
        if match:
            return Input(id=self.ids(), text=match.group(1))

        match = p.output.match(text)
        if match:
            return Output(id=self.ids(), text=match.group(1))

        return Task(id=self.ids(), text=text)

    def build_try_catch(self, block, partner):
        if not self.patterns.catch_prefix.match(partner.text):
            raise MalformedConstructError(f"Expected catch block after {block.text!r}, got {partner.text!r}")
        catch_text = strip_colon(self.patterns.catch_prefix.sub("", partner.text, count=1))
        return TryCatch(
            id=self.ids(),
            text=catch_text,
            try_child=self.parse_children(block),
            catch_child=self.parse_children(partner),
        )

    def build_branch(self, block, partner):
        if partner is not None and not self.patterns.else_block.match(partner.text):
            raise MalformedConstructError(f"Expected else block after {block.text!r}, got {partner.text!r}")
        raw_condition = strip_colon(self.patterns.if_prefix.sub("", block.text, count=1))
        condition, widths = extract_column_widths(raw_condition)
        true_child = self.parse_children(block)
        false_child = self.parse_children(partner) if partner is not None else make_chain(ids=self.ids)
        return Branch(
            id=self.ids(),
            text=condition,
            true_child=true_child,
            false_child=false_child,
            column_widths=widths,
        )

    def build_foot_loop(self, block, partner):
        if not self.patterns.is_foot_condition(partner.text):
            raise MalformedConstructError(f"Expected loop condition after {block.text!r}, got {partner.text!r}")
        condition = self.patterns.while_prefix.sub("", partner.text, count=1).strip()
        return PostTestLoop(id=self.ids(), text=condition, child=self.parse_children(block))

    def build_function(self, block, name, parameter_text):
        parameter_text = parameter_text.strip()
        parameters = ()
        if parameter_text:
            parameters = tuple(
                Parameter(position=str(index * 3), name=param.strip())
                for index, param in enumerate(parameter_text.split(","))
            )
        return FunctionDef(id=self.ids(), text=name, parameters=parameters, child=self.parse_children(block))

    def build_switch(self, block, raw_discriminant):
        discriminant, widths = extract_column_widths(raw_discriminant.strip())
        cases = []
        default_case = None
        if block.children:
            case_indent = min(line.indent for line in block.children)
            for case_block in group_blocks(block.children, case_indent):
                match = self.patterns.case_label.match(case_block.text)
                if match:
                    label = QUOTED_RE.sub(r"\1", match.group(1).strip())
                    cases.append(CaseLabel(id=self.ids(), text=label, follow_element=self.parse_children(case_block)))
                elif self.patterns.else_block.match(case_block.text):
                    default_case = CaseLabel(
                        id=self.ids(),
                        text=self.keywords["default"],
                        follow_element=self.parse_children(case_block),
                    )
                else:
                    logger.debug("Ignoring line %r inside switch %r", case_block.text, discriminant)

        default_enabled = default_case is not None
        if default_case is None:
            default_case = CaseLabel(id=self.ids(), text=self.keywords["default"], follow_element=make_chain(ids=self.ids))
        return Switch(
            id=self.ids(),
            text=discriminant,
            cases=tuple(cases),
            default_enabled=default_enabled,
            default_case=default_case,
            column_widths=widths,
        )
