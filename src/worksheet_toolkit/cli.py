"""
Module: cli

Purpose:
    Command line entry point (``worksheet-toolkit``).

    import    markup / JSON / data-item HTML -> project JSON
    export    project JSON -> canonical markup or data-item HTML
    paginate  project JSON -> page / column assignment summary

Key Functions:
    - build_parser(): argparse definition
    - main(): Entry point, returns a process exit code

Dependencies:
    - session.EditorSession
    - utils.logging_utils: configure_cli_logging
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from worksheet_toolkit import __version__
from worksheet_toolkit.config import load_editor_config
from worksheet_toolkit.core.utils.serialization import load_project
from worksheet_toolkit.errors import WorksheetError
from worksheet_toolkit.session import EditorSession
from worksheet_toolkit.utils.logging_utils import configure_cli_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worksheet-toolkit",
        description="Import, export and paginate math worksheet projects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG")
    parser.add_argument("--config", type=Path, help="Editor config JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Convert markup, JSON or data-item HTML into a project")
    p_import.add_argument("input", type=Path, help="Text file to import ('-' for stdin)")
    p_import.add_argument("-o", "--output", type=Path, required=True, help="Project JSON to write")
    p_import.add_argument("--append-to", type=Path, help="Existing project to append the blocks to")
    p_import.add_argument("--limit", type=int, default=0, help="Insert a column break after N questions")
    p_import.add_argument("--spacer", action="store_true", help="Insert a spacer after each question")
    p_import.add_argument("--normalize-llm", action="store_true", help="Clean up LLM output before parsing")

    p_export = sub.add_parser("export", help="Write a project back out as markup or HTML")
    p_export.add_argument("project", type=Path, help="Project JSON")
    p_export.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_export.add_argument("--format", choices=("markup", "html"), default="markup")
    p_export.add_argument("--no-meta", action="store_true", help="Omit header/footer lines")

    p_paginate = sub.add_parser("paginate", help="Show which block lands on which page and column")
    p_paginate.add_argument("project", type=Path, help="Project JSON")
    p_paginate.add_argument("--image-root", type=Path, help="Directory image paths resolve against")
    p_paginate.add_argument("--json", action="store_true", help="Print the layout as JSON")

    return parser


def _read_input(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _write_output(text: str, path: Optional[Path]) -> None:
    if path is None:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    print(f"Wrote {path}")


def cmd_import(args: argparse.Namespace) -> int:
    config = load_editor_config(args.config)
    text = _read_input(args.input)
    if args.append_to:
        document, settings = load_project(args.append_to)
        session = EditorSession(document, settings, config=config)
    else:
        session = EditorSession(config=config)

    result = session.import_text(
        text,
        overwrite=args.append_to is None,
        limit=args.limit,
        add_spacer=args.spacer,
        normalize_llm=args.normalize_llm,
    )
    session.save(args.output)
    print(f"Imported {len(result.blocks)} block(s) ({result.source}) into {args.output}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    document, settings = load_project(args.project)
    session = EditorSession(document, settings, config=load_editor_config(args.config))
    if args.format == "html":
        text = session.export_data_items()
    else:
        text = session.export_markup(include_meta=not args.no_meta)
    _write_output(text, args.output)
    return 0


def cmd_paginate(args: argparse.Namespace) -> int:
    document, settings = load_project(args.project)
    session = EditorSession(
        document,
        settings,
        config=load_editor_config(args.config),
        image_root=args.image_root or args.project.parent,
    )
    layout = session.layout
    if args.json:
        print(json.dumps(layout.to_dict(), ensure_ascii=False, indent=2))
        return 0

    print(f"{layout.page_count} page(s)")
    for page in layout.pages:
        for column in page.columns:
            ids = ", ".join(column.block_ids) or "-"
            print(f"  page {page.index + 1} col {column.slot.column_index + 1}: {ids}")
    if layout.warnings:
        print("\nWarnings:")
        for w in layout.warnings:
            print(f"  - {w}")
    return 0


COMMANDS = {
    "import": cmd_import,
    "export": cmd_export,
    "paginate": cmd_paginate,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(args.verbose)

    try:
        return COMMANDS[args.command](args)
    except WorksheetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"File not found: {e.filename}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Not a valid project file: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
