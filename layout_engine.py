"""
Two-pass layout of a structogram tree into nested boxes.

Pass 1 measures subtrees bottom-up (height depends only on node, width and
font metrics). Pass 2 places boxes top-down using the measured heights. A
column given more height than it needs stretches its last content node, so
the columns of a branch or switch always end on the same line.

The result is renderer-independent: node boxes plus flat lists of lines,
text labels and background fills.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pseudocode_parser import resolve_keywords
from settings import (
    CHAR_WIDTH_FACTOR,
    DEFAULT_FONT_SIZE,
    DEFAULT_ROW_HEIGHT,
    FOOTER_HEIGHT_FACTOR,
    INSERT_HEIGHT,
    LINE_HEIGHT_FACTOR,
    LOOP_INDENT,
    MIN_BODY_FACTOR,
    PADDING_X,
    PADDING_Y,
)
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
    is_content,
    iter_chain,
)

logger = logging.getLogger(__name__)


@dataclass
class FontMetrics:
    """Approximate text measurement by average character width."""

    font_size: float = DEFAULT_FONT_SIZE
    char_width: Optional[float] = None

    def __post_init__(self):
        if self.char_width is None:
            self.char_width = self.font_size * CHAR_WIDTH_FACTOR

    @property
    def line_height(self):
        return self.font_size * LINE_HEIGHT_FACTOR

    def text_width(self, text):
        return len(text) * self.char_width


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float
    node_type: str


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class TextLabel:
    # Text lines are vertically centered within [y, y + height]
    lines: Tuple[str, ...]
    x: float
    y: float
    height: float
    font_size: float
    anchor: str = "start"


@dataclass(frozen=True)
class Fill:
    x: float
    y: float
    width: float
    height: float
    node_type: str


@dataclass
class LayoutResult:
    boxes: Dict[str, Box] = field(default_factory=dict)
    lines: List[Line] = field(default_factory=list)
    labels: List[TextLabel] = field(default_factory=list)
    fills: List[Fill] = field(default_factory=list)
    total_height: float = 0


def wrap_text(text, max_width, metrics):
    """Word-wrap ``text`` into lines that fit within ``max_width`` pixels."""
    if not text:
        return [""]
    lines = []
    for paragraph in text.split("\n"):
        if not paragraph or metrics.text_width(paragraph) <= max_width:
            lines.append(paragraph)
            continue
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if metrics.text_width(candidate) > max_width and current:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            lines.append(current)
    return lines or [""]


def column_pixel_widths(total_width, count, fractions=None):
    """Pixel widths of ``count`` columns, from optional width fractions."""
    if count <= 0:
        return []
    if fractions and len(fractions) == count:
        clamped = [max(0.0, f) for f in fractions]
        total = sum(clamped)
        if total > 1:
            clamped = [f / total for f in clamped]
        return [total_width * f for f in clamped]
    return [total_width / count] * count


def statement_label(node):
    if isinstance(node, Input):
        return "▶ " + node.text
    if isinstance(node, Output):
        return "◀ " + node.text
    return node.text


def function_header(node):
    params = ", ".join(p.name for p in node.parameters)
    return f"{node.text}({params}) {{"


def catch_label(node):
    return f"Catch ({node.text})" if node.text else "Catch"


def measure(node, font_metrics=None, width=600, insert_height=INSERT_HEIGHT):
    """Natural height of a chain starting at ``node``."""
    return LayoutEngine(font_metrics, insert_height).measure_chain(node, width)


def layout(node, origin=(0, 0), width=600, font_metrics=None, available_height=None,
           insert_height=INSERT_HEIGHT, keywords=None):
    """Place the chain starting at ``node`` with its top-left corner at ``origin``.

    With ``available_height`` larger than the natural height, the last
    content node absorbs the difference and ``total_height`` equals
    ``available_height``.
    """
    engine = LayoutEngine(font_metrics, insert_height, keywords)
    x, y = origin
    engine.result.total_height = engine.place_chain(node, x, y, width, available_height)
    logger.debug("Laid out %d boxes, height %s", len(engine.result.boxes), engine.result.total_height)
    return engine.result


class LayoutEngine:
    def __init__(self, font_metrics=None, insert_height=INSERT_HEIGHT, keywords=None):
        self.metrics = font_metrics or FontMetrics()
        self.insert_height = insert_height
        self.keywords = resolve_keywords(keywords)
        self.result = LayoutResult()
        self._heights = {}

    # ---- Pass 1: measure ------------------------------------------------

    def row_height(self, text, width):
        lines = wrap_text(text, width - PADDING_X * 2, self.metrics)
        return max(DEFAULT_ROW_HEIGHT, len(lines) * self.metrics.line_height + PADDING_Y * 2)

    def slope_height(self):
        return self.metrics.line_height + PADDING_Y

    def measure_chain(self, node, width):
        return sum(self.own_height(item, width) for item in iter_chain(node))

    def body_height(self, chain, width, row_h):
        return max(self.measure_chain(chain, width - LOOP_INDENT), row_h * MIN_BODY_FACTOR)

    def own_height(self, node, width):
        """Height of a single node, without the nodes following it."""
        key = (id(node), width)
        if key not in self._heights:
            self._heights[key] = self._own_height(node, width)
        return self._heights[key]

    def _own_height(self, node, width):
        if isinstance(node, InsertionPoint):
            return self.insert_height
        if isinstance(node, EmptyMarker):
            return 0
        if isinstance(node, (Task, Input, Output)):
            return self.row_height(statement_label(node), width)
        if isinstance(node, CaseLabel):
            return self.row_height(node.text, width)
        if isinstance(node, Branch):
            header = self.row_height(node.text, width) + self.slope_height() * 2
            true_w, false_w = column_pixel_widths(width, 2, node.column_widths)
            return header + max(
                self.measure_chain(node.true_child, true_w),
                self.measure_chain(node.false_child, false_w),
            )
        if isinstance(node, Switch):
            header = self.row_height(node.text, width) + self.slope_height()
            return header + max(
                (self.measure_chain(case, w) for case, w in self.switch_columns(node, width)),
                default=0,
            )
        if isinstance(node, (PreTestLoop, CountLoop, PostTestLoop)):
            row_h = self.row_height(node.text, width)
            return row_h + self.body_height(node.child, width, row_h)
        if isinstance(node, FunctionDef):
            row_h = self.row_height(function_header(node), width)
            return row_h + self.body_height(node.child, width, row_h) + DEFAULT_ROW_HEIGHT * FOOTER_HEIGHT_FACTOR
        if isinstance(node, TryCatch):
            try_row = self.row_height("Try", width)
            catch_row = self.row_height(catch_label(node), width)
            return (
                try_row + self.body_height(node.try_child, width, try_row)
                + catch_row + self.body_height(node.catch_child, width, catch_row)
            )
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def switch_columns(self, node, width):
        """``(case, column width)`` pairs, default case last."""
        columns = list(node.cases)
        if node.default_enabled and node.default_case is not None:
            columns.append(node.default_case)
        widths = column_pixel_widths(width, len(columns), node.column_widths)
        return list(zip(columns, widths))

    # ---- Pass 2: place --------------------------------------------------

    def place_chain(self, node, x, y, width, available_height=None):
        items = list(iter_chain(node))
        heights = [self.own_height(item, width) for item in items]
        total = sum(heights)
        if available_height is not None and available_height > total:
            absorber = self.absorber_index(items)
            if absorber is not None:
                heights[absorber] += available_height - total
            # Without an absorber (bare EmptyMarker or None) the space stays blank
            total = available_height

        current_y = y
        for item, height in zip(items, heights):
            self.place(item, x, current_y, width, height)
            current_y += height
        return total

    @staticmethod
    def absorber_index(items):
        """Index of the node that grows when its chain is stretched."""
        for index in range(len(items) - 1, -1, -1):
            if is_content(items[index]):
                return index
        for index in range(len(items) - 1, -1, -1):
            if isinstance(items[index], InsertionPoint):
                return index
        return None

    def add_box(self, node, x, y, width, height):
        if node.id is not None:
            self.result.boxes[node.id] = Box(x, y, width, height, type(node).__name__)

    def line(self, x1, y1, x2, y2):
        self.result.lines.append(Line(x1, y1, x2, y2))

    def fill(self, node, x, y, width, height):
        self.result.fills.append(Fill(x, y, width, height, type(node).__name__))

    def label(self, text, x, y, height, max_width=None, anchor="start", font_size=None):
        font_size = font_size or self.metrics.font_size
        lines = wrap_text(text, max_width, self.metrics) if max_width is not None else [text or ""]
        self.result.labels.append(TextLabel(tuple(lines), x, y, height, font_size, anchor))

    def side_bar(self, node, x, y, height):
        self.fill(node, x, y, LOOP_INDENT, height)
        self.line(x, y, x, y + height)
        self.line(x + LOOP_INDENT, y, x + LOOP_INDENT, y + height)

    def place(self, node, x, y, width, height):
        """Draw a single node into a box of the given (possibly stretched) height."""
        if isinstance(node, EmptyMarker):
            return
        self.add_box(node, x, y, width, height)
        if isinstance(node, InsertionPoint):
            return

        text_w = width - PADDING_X * 2
        if isinstance(node, (Task, Input, Output)):
            text = statement_label(node)
            self.fill(node, x, y, width, height)
            self.line(x, y, x + width, y)
            self.line(x, y, x, y + height)
            self.label(text, x + PADDING_X, y, self.row_height(text, width), text_w)
        elif isinstance(node, CaseLabel):
            self.fill(node, x, y, width, height)
            self.line(x, y, x, y + height)
            self.label(node.text, x + PADDING_X, y, self.row_height(node.text, width), text_w)
        elif isinstance(node, Branch):
            self.place_branch(node, x, y, width, height)
        elif isinstance(node, Switch):
            self.place_switch(node, x, y, width, height)
        elif isinstance(node, (PreTestLoop, CountLoop)):
            self.place_head_section(node, node.text, node.child, x, y, width, height)
        elif isinstance(node, FunctionDef):
            foot_h = DEFAULT_ROW_HEIGHT * FOOTER_HEIGHT_FACTOR
            body_bottom = y + self.place_head_section(node, function_header(node), node.child, x, y, width, height - foot_h)
            self.fill(node, x, body_bottom, width, foot_h)
            self.line(x + LOOP_INDENT, body_bottom, x + width, body_bottom)
            self.line(x, body_bottom, x, body_bottom + foot_h)
            self.label("}", x + PADDING_X, body_bottom, foot_h)
        elif isinstance(node, PostTestLoop):
            self.place_foot_loop(node, x, y, width, height)
        elif isinstance(node, TryCatch):
            self.place_try_catch(node, x, y, width, height)
        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    def place_head_section(self, node, text, child, x, y, width, height, top_line=True):
        """Header row plus indented body filling ``height``. Returns ``height``."""
        row_h = self.row_height(text, width)
        body_h = height - row_h
        self.fill(node, x, y, width, row_h)
        if top_line:
            self.line(x, y, x + width, y)
        else:
            self.line(x + LOOP_INDENT, y, x + width, y)
        self.line(x, y, x, y + row_h)
        self.label(text, x + PADDING_X, y, row_h, width - PADDING_X * 2)
        self.side_bar(node, x, y + row_h, body_h)
        self.place_chain(child, x + LOOP_INDENT, y + row_h, width - LOOP_INDENT, body_h)
        return height

    def place_foot_loop(self, node, x, y, width, height):
        row_h = self.row_height(node.text, width)
        body_h = height - row_h
        self.line(x, y, x + width, y)
        self.side_bar(node, x, y, body_h)
        self.place_chain(node.child, x + LOOP_INDENT, y, width - LOOP_INDENT, body_h)

        footer_y = y + body_h
        self.fill(node, x, footer_y, width, row_h)
        self.line(x + LOOP_INDENT, footer_y, x + width, footer_y)
        self.line(x, footer_y, x, footer_y + row_h)
        self.label(node.text, x + PADDING_X, footer_y, row_h, width - PADDING_X * 2)

    def place_try_catch(self, node, x, y, width, height):
        try_row = self.row_height("Try", width)
        try_body = self.body_height(node.try_child, width, try_row)
        self.place_head_section(node, "Try", node.try_child, x, y, width, try_row + try_body)

        # The catch section takes the remaining (possibly stretched) height
        catch_y = y + try_row + try_body
        self.place_head_section(node, catch_label(node), node.catch_child, x, catch_y, width,
                                height - try_row - try_body, top_line=False)
        self.line(x, y + height, x + LOOP_INDENT, y + height)

    def place_branch(self, node, x, y, width, height):
        cond_h = self.row_height(node.text, width)
        slope_h = self.slope_height()
        header_h = cond_h + slope_h * 2
        column_h = height - header_h
        true_w, false_w = column_pixel_widths(width, 2, node.column_widths)
        div_x = x + true_w

        self.fill(node, x, y, width, header_h)
        self.line(x, y, x + width, y)
        self.line(x, y, x, y + header_h)
        self.label(node.text, x + width / 2, y, cond_h, width - PADDING_X * 2, "middle")

        slope_bottom = y + cond_h + slope_h
        self.line(x, y + cond_h, div_x, slope_bottom)
        self.line(x + width, y + cond_h, div_x, slope_bottom)
        small = self.metrics.font_size * 0.8
        self.label(self.keywords["true"], x + PADDING_X, slope_bottom, slope_h, font_size=small)
        self.label(self.keywords["false"], x + width - PADDING_X, slope_bottom, slope_h, anchor="end", font_size=small)
        self.line(div_x, slope_bottom, div_x, y + header_h)

        self.place_chain(node.true_child, x, y + header_h, true_w, column_h)
        self.place_chain(node.false_child, div_x, y + header_h, false_w, column_h)
        self.line(div_x, y + header_h, div_x, y + height)

    def place_switch(self, node, x, y, width, height):
        cond_h = self.row_height(node.text, width)
        slope_h = self.slope_height()
        header_h = cond_h + slope_h
        column_h = height - header_h
        columns = self.switch_columns(node, width)
        count = len(columns)

        self.fill(node, x, y, width, header_h)
        self.line(x, y, x + width, y)
        self.line(x, y, x, y + header_h)
        self.label(node.text, x + width / 2, y, cond_h, width - PADDING_X * 2, "middle")

        offsets = [0]
        for _, column_w in columns:
            offsets.append(offsets[-1] + column_w)

        if node.default_enabled and count:
            # Two diagonals meeting at the boundary in front of the default column
            last_offset = offsets[count - 1]
            self.line(x, y + cond_h, x + last_offset, y + header_h)
            self.line(x + width, y + cond_h, x + last_offset, y + header_h)
            dividers = range(1, count - 1)
            span = last_offset
        else:
            self.line(x, y + cond_h, x + width, y + header_h)
            dividers = range(1, count)
            span = width
        for i in dividers:
            # Vertical divider starting on the diagonal
            fraction = offsets[i] / span if span else 0
            self.line(x + offsets[i], y + cond_h + slope_h * fraction, x + offsets[i], y + header_h)

        for i, (case, column_w) in enumerate(columns):
            column_x = x + offsets[i]
            self.place_chain(case, column_x, y + header_h, column_w, column_h)
            if i > 0:
                self.line(column_x, y + header_h, column_x, y + height)
