#!/usr/bin/env python3
"""tada command-line interface.

Running `tada` with no subcommand starts the interactive session.

Usage:
    tada add "Proj/Write spec" -d "First draft" -p 2 -t docs,writing
    tada list --search docs --sort priority
    tada list --output json
    tada edit "Proj/Write spec" --priority 0
    tada move "Proj/Write spec" Done
    tada complete "Buy milk"
    tada bulk --tag x --status todo --complete
    tada export -f csv -o tasks.csv
    tada show 20260
    tada stats
    tada config set default_sort priority --global
    tada tui

Exit codes:
    0 - Command ran (errors are reported on stderr)
    1 - No .tada directory found
    2 - Unknown command or bad arguments
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass

import yaml

from tada import __version__
from tada.commands import (
    BulkAction,
    add_task,
    bulk_apply,
    complete_task,
    compute_stats,
    copy_task,
    delete_task,
    edit_task,
    export_all,
    list_tasks,
    move_task,
    show_task,
    split_tags,
)
from tada.config import TadaConfig, set_config_value
from tada.errors import NoMatchError, TadaError, TaskNotFoundError
from tada.export import EXPORT_FORMATS
from tada.paths import RootNotFoundError, find_root, get_global_config_path, get_local_config_path
from tada.task_model import DEFAULT_PRIORITY, TaskRecord, TaskStatus
from tada.task_query import SORT_KEYS
from tada.task_storage import TaskStore
from tada.theme import Painter, color_enabled, get_theme, visible_len

logger = logging.getLogger(__name__)

STATUS_HELP = ", ".join(s.value for s in TaskStatus)


@dataclass
class Context:
    store: TaskStore
    config: TadaConfig
    out: Painter
    err: Painter


def _print_table(rows: list[list[str]], ctx: Context) -> None:
    """Print rows as space-aligned columns; the first row is the header."""
    widths = [max(visible_len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for n, row in enumerate(rows):
        cells = []
        for i, cell in enumerate(row):
            pad = " " * (widths[i] - visible_len(cell))
            cells.append(cell + pad if i < len(row) - 1 else cell)
        line = "  ".join(cells)
        print(ctx.out.accent(line, bold=True) if n == 0 else line)


def _record_dicts(records: list[TaskRecord]) -> list[dict]:
    return [r.to_dict() for r in records]


# --- Subcommand handlers ---


def cmd_add(args: argparse.Namespace, ctx: Context) -> None:
    record = add_task(
        ctx.store,
        " ".join(args.title),
        description=args.description,
        priority=args.priority,
        tags=split_tags(args.tags),
        status=args.status,
        config=ctx.config,
    )
    print(ctx.out.success(f"Task added: {record.task.title}"))
    if record.topic:
        print(ctx.out.paint(f"Topic: {record.topic}", ctx.out.theme.success))


def cmd_list(args: argparse.Namespace, ctx: Context) -> None:
    sort_by = args.sort or ctx.config.default_sort or "created"
    records = list_tasks(ctx.store, status=args.status, search=args.search, sort_by=sort_by)

    if args.simple:
        for record in records:
            print(f"{record.short_id}\t{ctx.out.bold(record.task.title)}\t{ctx.out.accent(record.task.status.value)}")
        return
    if args.output == "json":
        print(json.dumps(_record_dicts(records), indent=2, ensure_ascii=False))
        return
    if args.output == "yaml":
        print(yaml.dump(_record_dicts(records), default_flow_style=False, sort_keys=False, allow_unicode=True), end="")
        return

    if not records:
        print(ctx.out.muted("No tasks found."))
        return
    rows = [["ID", "TOPIC", "TITLE", "PRIORITY", "STATUS", "TAGS", "CREATED"]]
    for record in records:
        task = record.task
        rows.append(
            [
                record.short_id,
                record.topic or ".",
                task.title,
                str(task.priority),
                ctx.out.accent(task.status.value),
                ctx.out.paint(",".join(task.tags) or "-", ctx.out.theme.success),
                task.created_at.strftime("%Y-%m-%d %H:%M") if task.created_at else "",
            ]
        )
    _print_table(rows, ctx)


def cmd_edit(args: argparse.Namespace, ctx: Context) -> None:
    edit_task(
        ctx.store,
        " ".join(args.title),
        description=args.description,
        priority=args.priority,
        tags=split_tags(args.tags),
        status=args.status,
    )
    print(ctx.out.success("Task updated."))


def cmd_delete(args: argparse.Namespace, ctx: Context) -> None:
    record = delete_task(ctx.store, " ".join(args.title))
    print(ctx.out.success(f"Task deleted: {record.task.title}"))


def cmd_move(args: argparse.Namespace, ctx: Context) -> None:
    move_task(ctx.store, args.task, args.new_topic)
    print(ctx.out.success(f"Task moved to topic: {args.new_topic}"))


def cmd_copy(args: argparse.Namespace, ctx: Context) -> None:
    copy_task(ctx.store, args.task, args.new_topic)
    print(ctx.out.success(f"Task copied to topic: {args.new_topic}"))


def cmd_complete(args: argparse.Namespace, ctx: Context) -> None:
    ref = " ".join(args.title)
    complete_task(ctx.store, ref)
    topic, _, title = ref.rpartition("/")
    print(ctx.out.success(f"Task completed and archived: {title}"))
    if topic:
        print(ctx.out.paint(f"Topic: {topic}", ctx.out.theme.success))


def cmd_bulk(args: argparse.Namespace, ctx: Context) -> None:
    if args.delete:
        action = BulkAction.DELETE
    elif args.complete:
        action = BulkAction.COMPLETE
    else:
        action = BulkAction.MOVE
    matched = bulk_apply(
        ctx.store,
        action,
        search=args.search,
        tag=args.tag,
        status=args.status,
        target_topic=args.move or "",
    )
    print(ctx.out.success(f"Bulk operation complete on {len(matched)} tasks."))


def cmd_export(args: argparse.Namespace, ctx: Context) -> None:
    count = export_all(ctx.store, args.format, args.output)
    if args.output not in (None, "", "-"):
        print(ctx.out.success(f"Exported {count} tasks to {args.output}"))


def cmd_show(args: argparse.Namespace, ctx: Context) -> None:
    record = show_task(ctx.store, " ".join(args.task))
    if args.output == "json":
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        return
    if args.output == "yaml":
        print(yaml.dump(record.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True), end="")
        return

    task = record.task
    created = task.created_at.strftime("%Y-%m-%d %H:%M") if task.created_at else ""
    print(ctx.out.accent(task.title, bold=True))
    meta = [
        f"Topic: {record.topic}",
        f"Priority: {task.priority}",
        f"Status: {task.status.value}",
        f"Tags: {', '.join(task.tags)}",
        f"Created: {created}",
    ]
    if task.completed_at:
        meta.append(f"Completed: {task.completed_at.strftime('%Y-%m-%d %H:%M')}")
    print(ctx.out.paint("\n".join(meta), ctx.out.theme.success))
    if task.description:
        print(ctx.out.muted("\n" + task.description))


def cmd_stats(args: argparse.Namespace, ctx: Context) -> None:
    stats = compute_stats(ctx.store)
    print(ctx.out.accent("Task Statistics", bold=True))
    print("\nBy Status:")
    for status, count in stats.by_status.items():
        print(f"  {status}: {count}")
    print("\nBy Topic:")
    for topic, count in stats.by_topic.items():
        print(f"  {topic or '.'}: {count}")
    print("\nBy Tag:")
    for tag, count in stats.by_tag.items():
        print(f"  {tag}: {count}")
    print(f"\nArchived: {stats.archived}")


def cmd_config(args: argparse.Namespace, ctx: Context) -> None:
    if args.config_command != "set":
        print(ctx.config.to_yaml(), end="")
        return
    path = get_global_config_path() if args.use_global else get_local_config_path(ctx.store.root)
    set_config_value(args.key, args.value, path)
    print(ctx.out.success("Config updated."))


def cmd_tui(args: argparse.Namespace, ctx: Context) -> None:
    from tada.tui import run_tui

    run_tui(ctx.store, get_theme(ctx.config.theme))


# --- Parser ---


def _add_task_fields(parser: argparse.ArgumentParser, *, priority_default: int | None) -> None:
    parser.add_argument("--description", "-d", default="", help="Task description")
    parser.add_argument(
        "--priority", "-p", type=int, default=priority_default, help="Task priority (lower is more urgent)"
    )
    parser.add_argument(
        "--tags", "-t", action="append", help="Comma separated tags (repeatable)"
    )
    parser.add_argument("--status", help=f"Task status ({STATUS_HELP})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tada",
        description="A terminal todo manager backed by Markdown files. Runs the interactive UI when no command is given.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("add", help="Add a new task")
    p.add_argument("title", nargs="+", help="[topic/]title")
    _add_task_fields(p, priority_default=DEFAULT_PRIORITY)
    p.set_defaults(handler=cmd_add)

    p = sub.add_parser("list", help="List tasks")
    p.add_argument("--status", "-s", help=f"Filter by status ({STATUS_HELP})")
    p.add_argument("--search", "-q", default="", help="Search title, description, tags and topic")
    p.add_argument("--sort", choices=SORT_KEYS, help="Sort key (default: config default_sort, else created)")
    p.add_argument("--simple", action="store_true", help="Print id, title and status only")
    p.add_argument("--output", "-o", choices=("table", "json", "yaml"), default="table", help="Output format")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("edit", help="Edit a task in place")
    p.add_argument("title", nargs="+", help="[topic/]title")
    _add_task_fields(p, priority_default=None)
    p.set_defaults(handler=cmd_edit)

    p = sub.add_parser("delete", help="Delete a task")
    p.add_argument("title", nargs="+", help="[topic/]title")
    p.set_defaults(handler=cmd_delete)

    for name, handler, verb in (("move", cmd_move, "Move"), ("copy", cmd_copy, "Copy")):
        p = sub.add_parser(name, help=f"{verb} a task to another topic")
        p.add_argument("task", help="[topic/]title")
        p.add_argument("new_topic", help="Destination topic")
        p.set_defaults(handler=handler)

    p = sub.add_parser("complete", help="Mark a task done and archive it")
    p.add_argument("title", nargs="+", help="[topic/]title")
    p.set_defaults(handler=cmd_complete)

    p = sub.add_parser("bulk", help="Delete, complete or move every matching task")
    p.add_argument("--search", default="", help="Search title, description, tags and topic")
    p.add_argument("--tag", default="", help="Match tasks carrying this tag")
    p.add_argument("--status", help=f"Match tasks with this status ({STATUS_HELP})")
    actions = p.add_mutually_exclusive_group(required=True)
    actions.add_argument("--delete", action="store_true", help="Delete matching tasks")
    actions.add_argument("--complete", action="store_true", help="Complete and archive matching tasks")
    actions.add_argument("--move", metavar="TOPIC", help="Move matching tasks to TOPIC")
    p.set_defaults(handler=cmd_bulk)

    p = sub.add_parser("export", help="Export all tasks")
    p.add_argument("--format", "-f", default="json", help=f"Export format ({', '.join(EXPORT_FORMATS)})")
    p.add_argument("--output", "-o", default="-", help="Output file (default: stdout)")
    p.set_defaults(handler=cmd_export)

    p = sub.add_parser("show", help="Show one task by [topic/]title or id")
    p.add_argument("task", nargs="+", help="[topic/]title or 5-character id")
    p.add_argument("--output", "-o", choices=("pretty", "json", "yaml"), default="pretty", help="Output format")
    p.set_defaults(handler=cmd_show)

    p = sub.add_parser("stats", help="Counts by status, topic and tag")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("config", help="Show or set configuration")
    config_sub = p.add_subparsers(dest="config_command", metavar="ACTION")
    config_sub.add_parser("show", help="Print the effective config")
    set_parser = config_sub.add_parser("set", help="Set a config value")
    set_parser.add_argument("key", help="default_sort, theme, default_status or tags")
    set_parser.add_argument("value", help="New value (tags: comma separated)")
    set_parser.add_argument("--global", dest="use_global", action="store_true", help="Write the global config")
    p.set_defaults(handler=cmd_config)

    p = sub.add_parser("tui", help="Start the interactive UI")
    p.set_defaults(handler=cmd_tui)

    return parser


def _error_text(error: Exception) -> str:
    if isinstance(error, TaskNotFoundError):
        return "Task not found."
    if isinstance(error, NoMatchError):
        return "No matching tasks found."
    return f"Error: {error}"


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        root = find_root()
    except RootNotFoundError as e:
        logger.debug("%s", e)
        err = Painter(get_theme(None), color_enabled(sys.stderr))
        print(err.error("No .tada folder found in this or any parent directory."), file=sys.stderr)
        return 1

    config = TadaConfig.load(root)
    theme = get_theme(config.theme)
    ctx = Context(
        store=TaskStore(root),
        config=config,
        out=Painter(theme, color_enabled(sys.stdout)),
        err=Painter(theme, color_enabled(sys.stderr)),
    )

    handler = getattr(args, "handler", cmd_tui)
    try:
        handler(args, ctx)
    except (TadaError, OSError) as e:
        logger.debug("%s failed", args.command or "tui", exc_info=True)
        print(ctx.err.error(_error_text(e)), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
