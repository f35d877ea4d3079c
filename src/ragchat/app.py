"""Command line entry point for ragchat."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai_types import ChatCompletion
from .client import AIClient
from .database import SqliteDatabase
from .orchestration.errors import ChatCompletionError
from .services.settings import (
    Settings,
    SettingsStore,
    build_client_settings,
    build_completions_config,
    redact_secret,
)
from .session import ChatSession, InMemorySessionStore, SqliteSessionStore
from .tools import create_database_tools

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_EXIT_COMMANDS = {"exit", "quit", ":q"}
_LOGGER = logging.getLogger(__name__)
_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(debug: bool = False, *, log_dir: Path | str | None = None) -> Path:
    """Log to a rotating file and report warnings on stderr.

    Answers own stdout, so stderr only carries warnings unless ``debug`` is
    set. The file lives in ``log_dir``, ``RAGCHAT_LOG_DIR`` or
    ``~/.ragchat/logs``. Calling again replaces the previous handlers.
    """

    level = logging.DEBUG if debug else logging.INFO
    directory = Path(log_dir or os.environ.get("RAGCHAT_LOG_DIR") or Path.home() / ".ragchat" / "logs")
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / "ragchat.log"

    formatter = logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level if debug else logging.WARNING)
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler], force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `ragchat` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("RAGCHAT_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("RAGCHAT_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True)

    if not args.prompt and not args.interactive:
        parser.error("a prompt is required unless --interactive is given")

    return asyncio.run(_run(args, settings))


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    client = AIClient(build_client_settings(settings))
    history_path = args.history_path or settings.history_path
    store: InMemorySessionStore | SqliteSessionStore
    store = SqliteSessionStore(Path(history_path).expanduser()) if history_path else InMemorySessionStore()
    database = SqliteDatabase(args.database) if args.database else None
    session = ChatSession(
        client,
        store,
        session_id=args.session,
        config=build_completions_config(settings),
        database=database,
        tools=create_database_tools(database).values() if database else None,
    )
    _LOGGER.info("Chat session %s started (model=%s)", session.id, settings.model)

    try:
        if args.prompt:
            await _ask(session, args.prompt, stream=args.stream, load_database_schema=args.schema)
        if args.interactive:
            await _interactive(session, stream=args.stream, load_database_schema=args.schema)
    except ChatCompletionError as exc:
        _LOGGER.error("Chat completion failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
        if isinstance(store, SqliteSessionStore):
            store.close()
        if database is not None:
            database.close()
    return 0


async def _ask(session: ChatSession, prompt: str, *, stream: bool, load_database_schema: bool) -> None:
    result = await session.create_chat_completion(
        prompt=prompt,
        stream=stream,
        load_database_schema=load_database_schema,
    )
    if isinstance(result, ChatCompletion):
        print(result.content)
        return
    await _print_stream(result)


async def _print_stream(stream: AsyncIterator[ChatCompletion], output: TextIO | None = None) -> None:
    destination = output or sys.stdout
    async for chunk in stream:
        destination.write(chunk.content)
        destination.flush()
    destination.write("\n")


async def _interactive(session: ChatSession, *, stream: bool, load_database_schema: bool) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "you> ")
        except EOFError:
            return
        prompt = line.strip()
        if not prompt:
            continue
        if prompt.lower() in _EXIT_COMMANDS:
            return
        await _ask(session, prompt, stream=stream, load_database_schema=load_database_schema)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ragchat",
        description="Chat with an OpenAI-compatible model, optionally over a SQLite database.",
    )
    parser.add_argument("prompt", nargs="?", help="Prompt to send. Omit with --interactive.")
    parser.add_argument("-i", "--interactive", action="store_true", help="Keep reading prompts from stdin.")
    parser.add_argument("--stream", action="store_true", help="Print the answer as it streams in.")
    parser.add_argument("--session", metavar="ID", help="Session id whose history should be continued.")
    parser.add_argument(
        "--history-path",
        metavar="PATH",
        help="SQLite file used to persist session history (in-memory when omitted).",
    )
    parser.add_argument(
        "--database",
        metavar="PATH",
        help="SQLite database exposed to the model through the database_describe tool.",
    )
    parser.add_argument(
        "--schema",
        action="store_true",
        help="Inject the --database schema as system context on every turn.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.ragchat/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is type(None) or normalized.lower() in {"none", "null"}:
        return None
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("RAGCHAT_")),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")
