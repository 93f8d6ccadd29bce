import logging

from flask import Flask, Response, jsonify, request

import settings
from code_generator import generate_code
from converter import convert_mermaid_to_nsd
from errors import InvalidRequestError, StructogramError
from pseudocode_parser import parse_pseudocode
from pseudocode_writer import tree_to_pseudocode
from structogram import tree_from_json, tree_to_json
from svg_renderer import render_svg
from tree_ops import edit_text, insert_at, move_node, prepare_tree, remove_node

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(settings)
app.config.from_prefixed_env("STRUKTO")


def request_data():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError("Expected a JSON object")
    return data


def require(data, key):
    if data.get(key) is None:
        raise InvalidRequestError(f"Missing field: {key}")
    return data[key]


def number(data, key, default):
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Field {key} must be a number") from None


def keywords_of(data):
    keywords = data.get("keywords") or app.config["DEFAULT_KEYWORD_SET"]
    if not isinstance(keywords, (str, dict)):
        raise InvalidRequestError("Field keywords must be a keyword set name or an object")
    return keywords


def tree_of(data):
    """The tree of a request, given as tree JSON or as pseudocode."""
    if data.get("tree") is not None:
        return tree_from_json(data["tree"])
    if data.get("pseudocode") is not None:
        return parse_pseudocode(str(data["pseudocode"]), keywords_of(data))
    raise InvalidRequestError("Missing field: tree or pseudocode")


@app.errorhandler(StructogramError)
def handle_structogram_error(error):
    logger.warning("Rejected %s %s: %s", request.method, request.path, error)
    return jsonify(error=str(error)), 400


@app.route('/parse', methods=['POST'])
def parse():
    data = request_data()
    keywords = keywords_of(data)
    tree = parse_pseudocode(str(require(data, "pseudocode")), keywords)
    return jsonify(tree_to_json(prepare_tree(tree, keywords=keywords)))


@app.route('/serialize', methods=['POST'])
def serialize():
    data = request_data()
    tree = tree_from_json(require(data, "tree"))
    return Response(tree_to_pseudocode(tree, keywords_of(data)), mimetype="text/plain")


@app.route('/generate', methods=['POST'])
def generate():
    data = request_data()
    language = data.get("language") or app.config["DEFAULT_TARGET_LANGUAGE"]
    code = generate_code(tree_of(data), str(language))
    return Response(code, mimetype="text/plain")


@app.route('/edit/<operation>', methods=['POST'])
def edit(operation):
    data = request_data()
    tree = tree_from_json(require(data, "tree"))

    if operation == 'insert':
        tree = insert_at(tree, require(data, "target_id"), require(data, "node_type"))
    elif operation == 'remove':
        tree = remove_node(tree, require(data, "node_id"))
    elif operation == 'edit_text':
        tree = edit_text(tree, require(data, "node_id"), str(require(data, "text")))
    elif operation == 'move':
        tree = move_node(tree, require(data, "node_id"), require(data, "target_id"))
    else:
        return jsonify(error=f"Unknown operation: {operation}"), 404

    return jsonify(tree_to_json(prepare_tree(tree, keywords=keywords_of(data))))


@app.route('/render', methods=['POST'])
def render():
    data = request_data()
    svg_output = render_svg(
        tree_of(data),
        width=number(data, "width", app.config["DEFAULT_WIDTH"]),
        font_size=number(data, "font_size", app.config["DEFAULT_FONT_SIZE"]),
        keywords=keywords_of(data),
    )
    return Response(svg_output, mimetype="image/svg+xml")


@app.route('/convert', methods=['POST'])
def convert():
    if 'file' not in request.files:
        return 'No file uploaded', 400

    file = request.files['file']
    if file.filename == '':
        return 'No file selected', 400

    mermaid_content = file.read().decode('utf-8')
    svg_output = convert_mermaid_to_nsd(
        mermaid_content,
        width=app.config["DEFAULT_WIDTH"],
        font_size=app.config["DEFAULT_FONT_SIZE"],
    )
    return Response(svg_output, mimetype="image/svg+xml")


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
