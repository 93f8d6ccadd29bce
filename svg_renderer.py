import html

from layout_engine import FontMetrics, Line, layout
from settings import (
    DEFAULT_FONT_SIZE,
    DEFAULT_WIDTH,
    INSERT_HEIGHT,
    LINE_HEIGHT_FACTOR,
    STROKE_COLOR,
    STROKE_WIDTH,
)

COLORS = {
    "Task": "rgb(253, 237, 206)",
    "Input": "rgb(253, 237, 206)",
    "Output": "rgb(253, 237, 206)",
    "PreTestLoop": "rgb(220, 239, 231)",
    "CountLoop": "rgb(220, 239, 231)",
    "PostTestLoop": "rgb(220, 239, 231)",
    "Branch": "rgb(250, 218, 209)",
    "Switch": "rgb(250, 218, 209)",
    "CaseLabel": "rgb(250, 218, 209)",
    "TryCatch": "rgb(250, 218, 209)",
    "FunctionDef": "rgb(255, 255, 255)",
}

ANCHORS = {"start": "start", "middle": "middle", "end": "end"}


def render_svg(tree, width=DEFAULT_WIDTH, font_size=DEFAULT_FONT_SIZE, keywords=None, insert_height=INSERT_HEIGHT):
    metrics = FontMetrics(font_size)
    result = layout(tree, (0, 0), width, metrics, insert_height=insert_height, keywords=keywords)
    height = result.total_height or 40
    pad = STROKE_WIDTH

    svg = ""
    for fill in result.fills:
        color = COLORS.get(fill.node_type, "white")
        svg += f'<rect x="{fill.x}" y="{fill.y}" width="{fill.width}" height="{fill.height}" fill="{color}" stroke="none"/>'

    for label in result.labels:
        svg += render_label(label)

    for line in result.lines + outer_border(width, result.total_height):
        svg += render_line(line.x1, line.y1, line.x2, line.y2)

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{-pad} {-pad} {width + pad * 2} {height + pad * 2}" '
        f'width="{width + pad * 2}" height="{height + pad * 2}" style="font-family: sans-serif;">{svg}</svg>'
    )


def outer_border(width, height):
    # Blocks draw their own top and left edges; close the diagram on the right and bottom
    return [Line(width, 0, width, height), Line(0, height, width, height)]


def render_line(x1, y1, x2, y2):
    return f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y2}" stroke="{STROKE_COLOR}" stroke-width="{STROKE_WIDTH}"/>'


def render_label(label):
    line_h = label.font_size * LINE_HEIGHT_FACTOR
    text_y = label.y + (label.height - len(label.lines) * line_h) / 2 + line_h / 2
    anchor = ANCHORS.get(label.anchor, "start")
    svg = (
        f'<text x="{label.x}" font-size="{label.font_size}" fill="#333" '
        f'text-anchor="{anchor}" dominant-baseline="central">'
    )
    for i, line in enumerate(label.lines):
        if i == 0:
            svg += f'<tspan x="{label.x}" y="{text_y}">{html.escape(line)}</tspan>'
        else:
            svg += f'<tspan x="{label.x}" dy="{line_h}">{html.escape(line)}</tspan>'
    return svg + "</text>"
