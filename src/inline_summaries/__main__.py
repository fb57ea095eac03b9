"""Command line interface for inline summaries.

Usage:
    python -m inline_summaries import chat.jsonl [--chat ID]
    python -m inline_summaries show ID [--expand 3 --expand 3.1]
    python -m inline_summaries summarize ID 2 7 [--manual]
    python -m inline_summaries restore ID 2
    python -m inline_summaries regenerate ID 2
    python -m inline_summaries settings set historical_context_depth 10
    python -m inline_summaries profiles add cheap openai gpt-4o-mini
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .backend import ProfileBackedGenerator
from .chat_files import read_chat_file, write_chat_file
from .environment import PresetService, ProfileService, reconcile_settings
from .errors import InlineSummaryError
from .navigation import MessagePath
from .orchestrator import InlineSummaries, SummaryMode
from .rendering import expand_paths, render_conversation
from .storage import Database, SettingsRepository, SqliteMessageStore, list_chats, save_messages

logger = logging.getLogger("inline_summaries")


def _print_error(message: str) -> None:
    print(f"[ILS] {message}", file=sys.stderr)


def _open(db: Database, chat_id: str) -> InlineSummaries:
    profiles = ProfileService(db)
    presets = PresetService(db)
    app = InlineSummaries(
        generator=ProfileBackedGenerator(profiles, presets),
        settings=SettingsRepository(db).load(),
        profiles=profiles,
        presets=presets,
        report_error=_print_error,
    )
    app.open_conversation(SqliteMessageStore(db, chat_id))
    return app


# ==================== Commands ====================

def cmd_import(db: Database, args: argparse.Namespace) -> int:
    header, messages = read_chat_file(args.file)
    chat_id = args.chat or Path(args.file).stem
    save_messages(db, chat_id, messages, header)
    print(f"Imported {len(messages)} messages as {chat_id!r}")
    return 0


def cmd_export(db: Database, args: argparse.Namespace) -> int:
    store = SqliteMessageStore(db, args.chat)
    write_chat_file(args.file, store.header, store.read_sequence())
    print(f"Exported {len(store.read_sequence())} messages to {args.file}")
    return 0


def cmd_chats(db: Database, args: argparse.Namespace) -> int:
    for chat_id, count in list_chats(db):
        print(f"{chat_id}\t{count} messages")
    return 0


def cmd_show(db: Database, args: argparse.Namespace) -> int:
    app = _open(db, args.chat)
    paths = [MessagePath.parse(p) for p in args.expand or []]
    for path in expand_paths(app.view, paths):
        _print_error(f"No summary at path {path}")
    print(render_conversation(app.messages(), app.selection, app.view, preview=args.preview))
    return 0


async def cmd_summarize(db: Database, args: argparse.Namespace) -> int:
    app = _open(db, args.chat)
    app.set_range_start(args.start)
    app.set_range_end(args.end)
    mode = SummaryMode.MANUAL if args.manual else SummaryMode.AI
    summary = await app.summarize(mode)
    if summary is None:
        _print_error(f"Nothing summarized for range {args.start}..{args.end}")
        return 1
    print(summary.text)
    return 0


async def cmd_restore(db: Database, args: argparse.Namespace) -> int:
    app = _open(db, args.chat)
    originals = await app.restore(args.index)
    print(f"Restored {len(originals)} messages at {args.index}")
    return 0


async def cmd_regenerate(db: Database, args: argparse.Namespace) -> int:
    app = _open(db, args.chat)
    if not await app.regenerate(args.index):
        return 1
    print(app.messages()[args.index].text)
    return 0


def cmd_settings(db: Database, args: argparse.Namespace) -> int:
    repo = SettingsRepository(db)
    if args.action == "reset":
        settings = repo.reset()
    elif args.action == "set":
        if args.key is None or args.value is None:
            _print_error("settings set needs KEY and VALUE")
            return 2
        try:
            settings = repo.update(args.key, args.value)
        except KeyError as exc:
            _print_error(str(exc.args[0]))
            return 2
    else:
        settings = repo.load()
        if reconcile_settings(settings, ProfileService(db), PresetService(db)):
            repo.save(settings)
    for key, value in settings.to_dict().items():
        print(f"{key} = {value!r}")
    return 0


async def cmd_environment(db: Database, args: argparse.Namespace) -> int:
    service = ProfileService(db) if args.command == "profiles" else PresetService(db)
    if args.action == "add":
        if args.command == "profiles":
            if not args.api or not args.model:
                _print_error("profiles add needs NAME API MODEL")
                return 2
            service.add(args.name, args.api, args.model)
        else:
            service.add(args.name, args.temperature, args.max_tokens)
        print(f"Added {service.kind} {args.name!r}")
    elif args.action == "use":
        await service.switch_to(args.name)
    elif args.action == "remove":
        service.remove(args.name)
    current = service.get_current()
    for name in service.list_names():
        print(f"{'*' if name == current else ' '} {name}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inline-summaries", description="Replace chat ranges with nested summaries")
    parser.add_argument("--db", help="SQLite database (default: $INLINE_SUMMARIES_DB_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import a JSONL chat file")
    p.add_argument("file")
    p.add_argument("--chat", help="Chat ID (default: file name)")

    p = sub.add_parser("export", help="Export a chat to a JSONL file")
    p.add_argument("chat")
    p.add_argument("file")

    sub.add_parser("chats", help="List stored chats")

    p = sub.add_parser("show", help="Print a chat")
    p.add_argument("chat")
    p.add_argument("--expand", action="append", metavar="PATH", help="Expand the summary at PATH, e.g. 3 or 3.1")
    p.add_argument("--preview", type=int, help="Truncate bodies to N characters")

    p = sub.add_parser("summarize", help="Replace messages START..END with a summary")
    p.add_argument("chat")
    p.add_argument("start", type=int)
    p.add_argument("end", type=int)
    p.add_argument("--manual", action="store_true", help="Insert a placeholder instead of generating")

    for name, help_text in (("restore", "Restore a summary's original messages"), ("regenerate", "Re-generate a summary")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("chat")
        p.add_argument("index", type=int)

    p = sub.add_parser("settings", help="Show or change prompt settings")
    p.add_argument("action", choices=["show", "set", "reset"], nargs="?", default="show")
    p.add_argument("key", nargs="?")
    p.add_argument("value", nargs="?")

    p = sub.add_parser("profiles", help="Manage generation profiles")
    p.add_argument("action", choices=["list", "add", "use", "remove"], nargs="?", default="list")
    p.add_argument("name", nargs="?", default="")
    p.add_argument("api", nargs="?")
    p.add_argument("model", nargs="?")

    p = sub.add_parser("presets", help="Manage generation presets")
    p.add_argument("action", choices=["list", "add", "use", "remove"], nargs="?", default="list")
    p.add_argument("name", nargs="?", default="")
    p.add_argument("--temperature", type=float)
    p.add_argument("--max-tokens", type=int)

    return parser


_SYNC_COMMANDS = {
    "import": cmd_import,
    "export": cmd_export,
    "chats": cmd_chats,
    "show": cmd_show,
    "settings": cmd_settings,
}

_ASYNC_COMMANDS = {
    "summarize": cmd_summarize,
    "restore": cmd_restore,
    "regenerate": cmd_regenerate,
    "profiles": cmd_environment,
    "presets": cmd_environment,
}


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _build_parser().parse_args(argv)
    db = Database(args.db)

    try:
        if args.command in _SYNC_COMMANDS:
            return _SYNC_COMMANDS[args.command](db, args)
        return asyncio.run(_ASYNC_COMMANDS[args.command](db, args))
    except (InlineSummaryError, KeyError, ValueError, OSError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _print_error(str(exc.args[0]) if isinstance(exc, KeyError) and exc.args else str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
