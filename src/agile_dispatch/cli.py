"""Command line entrypoint: `agile-dispatch <subcommand>`."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from typing import Any

from agile_dispatch.errors import AgileDispatchError
from agile_dispatch.obs.logging import setup_logging
from agile_dispatch.services import build_services, create_llm


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agile-dispatch",
        description="Dispatch AgileAiAgents slash commands and query the document registry.",
    )
    parser.add_argument("--project-root", default=".", help="Project root (default: .)")
    parser.add_argument(
        "--commands-dir",
        default=None,
        help="Directory of command markdown files (default: <root>/.claude/commands)",
    )
    parser.add_argument("--log-level", default="WARNING")

    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("commands", help="List registered commands by category")

    dispatch = sub.add_parser("dispatch", help="Run a command, e.g. dispatch /debug parser crash")
    dispatch.add_argument("invocation", nargs=argparse.REMAINDER)

    find = sub.add_parser("find", help="Search documents by name, summary, category or agent")
    find.add_argument("term")

    sub.add_parser("stats", help="Show registry statistics")

    archive = sub.add_parser("archive", help="Archive a document")
    archive.add_argument("category")
    archive.add_argument("name")

    convert = sub.add_parser("convert", help="Attach the JSON twin of a markdown document")
    convert.add_argument("md_path")
    convert.add_argument("json_path")

    depend = sub.add_parser("depend", help="Replace the dependencies of a document")
    depend.add_argument("category")
    depend.add_argument("name")
    depend.add_argument("dependencies", nargs="*")
    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level, stream=sys.stderr)

    commands_dir = args.commands_dir or f"{args.project_root}/.claude/commands"
    services = build_services(
        project_root=args.project_root,
        commands_dir=commands_dir,
        llm=create_llm() if args.action == "dispatch" else None,
    )

    try:
        if args.action == "commands":
            _emit(
                {
                    category: [
                        {"name": f"/{d.name}", "hint": d.argument_hint, "description": d.description}
                        for d in definitions
                    ]
                    for category, definitions in services.commands.by_category().items()
                }
            )
        elif args.action == "dispatch":
            result = services.dispatcher.dispatch_line(" ".join(args.invocation))
            _emit(
                {
                    "status": result.status.value,
                    "command": result.command,
                    "record": asdict(result.record) if result.record else None,
                    "reason": result.reason,
                }
            )
            return 0 if result.ok else 1
        elif args.action == "find":
            _emit(
                [
                    {**asdict(hit.record), "matched": sorted(f.value for f in hit.matched_fields)}
                    for hit in services.search_index.search(args.term)
                ]
            )
        elif args.action == "stats":
            _emit(services.documents.stats())
        elif args.action == "archive":
            _emit(asdict(services.documents.remove(args.category, args.name)))
        elif args.action == "convert":
            _emit(asdict(services.attach_json(args.md_path, args.json_path)))
        elif args.action == "depend":
            record = services.documents.set_dependencies(args.category, args.name, args.dependencies)
            _emit(asdict(record))
    except AgileDispatchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
