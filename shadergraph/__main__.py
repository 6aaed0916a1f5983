"""
Command-line entry point: generate shaders from a saved graph.

Usage:
    python -m shadergraph path/to/material.sed --output build/material
"""

import argparse
import logging
import sys
from pathlib import Path


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate vertex/fragment shader sources and a program descriptor from a shader graph"
    )
    parser.add_argument(
        "graph",
        type=str,
        help="Path to saved shader graph",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Base path of generated files (default: graph path)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on links to missing nodes instead of dropping them",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug messages",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(format="%(levelname)s: %(message)s")
    from shadergraph import log
    log.set_level(logging.DEBUG if args.verbose else logging.INFO)

    graph_path = Path(args.graph)
    if not graph_path.exists():
        print(f"Error: Graph file does not exist: {graph_path}")
        sys.exit(1)

    from shadergraph.editor.shader_editor import ShaderEditor

    editor = ShaderEditor()
    editor.strict_load = args.strict
    if not editor.load(graph_path):
        sys.exit(1)

    output = Path(args.output) if args.output is not None else graph_path
    if not editor.generate_all(output):
        sys.exit(1)


if __name__ == "__main__":
    main()
