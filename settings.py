# Layout constants
DEFAULT_ROW_HEIGHT = 40
LOOP_INDENT = 20  # Width of the side bar for loops, functions and try/catch
PADDING_X = 8
PADDING_Y = 6
LINE_HEIGHT_FACTOR = 1.3
FOOTER_HEIGHT_FACTOR = 0.6  # Function footer "}" relative to DEFAULT_ROW_HEIGHT
MIN_BODY_FACTOR = 0.5  # Minimum loop body relative to its header row
CHAR_WIDTH_FACTOR = 8 / 14  # Approximate width of a character relative to the font size

# Rendering defaults
DEFAULT_WIDTH = 600
DEFAULT_FONT_SIZE = 14
INSERT_HEIGHT = 0
STROKE_COLOR = "#333"
STROKE_WIDTH = 1.5

# Text formats
INDENT_UNIT = 4
DEFAULT_KEYWORD_SET = "de"
DEFAULT_TARGET_LANGUAGE = "python"
