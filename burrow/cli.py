"""
Command-line entry point for burrow.
"""

from __future__ import annotations

import argparse
import ipaddress
import logging
import os
import re
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .cancel import CancellationMonitor
from .config import (
    MAX_CODE_LENGTH,
    MIN_CODE_LENGTH,
    AppConfig,
    load_config,
    resolve_download_dir,
    save_config,
)
from .engine import PayloadDescriptor, Role
from .language import LANGUAGES, MESSAGES, get_message, render_message
from .session import ErrorKind, SessionConfig, SessionController, SessionResult, SessionState
from .transfer import LanTransferEngine
from .ui import TerminalUI, show_message
from .utils import flush_input_buffer
from .wordlist import Wordlist, default_wordlist

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 3

DEBUG_ENV = "BURROW_DEBUG"

ON_OFF_ALIASES = {
    "1": True,
    "on": True,
    "y": True,
    "yes": True,
    "true": True,
    "enable": True,
    "enabled": True,
    "开": True,
    "是": True,
    "0": False,
    "off": False,
    "n": False,
    "no": False,
    "false": False,
    "disable": False,
    "disabled": False,
    "关": False,
    "否": False,
}

_HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]{0,251}[A-Za-z0-9])?$")


def debug_from_env() -> bool:
    return os.getenv(DEBUG_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(verbosity: int = 0) -> int:
    """Route log records to stderr through rich; returns the chosen level."""

    if debug_from_env() or verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=level == logging.DEBUG,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    return level


def normalize_on_off(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return ON_OFF_ALIASES.get(value.strip().lower())


def exit_code_for(result: SessionResult) -> int:
    if result.state is SessionState.COMPLETED:
        return EXIT_OK
    if result.state is SessionState.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILED


class LocalizedArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that uses localized usage and error messages."""

    def __init__(self, *args, **kwargs) -> None:
        self._messages = kwargs.pop("messages", {})
        super().__init__(*args, **kwargs)

    def _render_usage(self) -> Optional[str]:
        template = self.usage or self._messages.get("cli_usage")
        if not template:
            return None
        try:
            body = template % {"prog": self.prog}
        except Exception:  # noqa: BLE001
            body = template
        prefix = self._messages.get("cli_usage_prefix")
        if prefix:
            return f"{prefix} {body}"
        return body

    def format_usage(self) -> str:
        rendered = self._render_usage()
        if rendered is not None:
            if not rendered.endswith("\n"):
                rendered += "\n"
            return rendered
        return super().format_usage()

    def print_usage(self, file=None) -> None:
        if file is None:
            file = sys.stderr
        self._print_message(self.format_usage(), file)

    def format_help(self) -> str:
        help_text = super().format_help()
        prefix = self._messages.get("cli_usage_prefix")
        if prefix and prefix != "usage:":
            help_text = help_text.replace("usage:", prefix, 1)
        help_text = re.sub(r"^\s+\{[^}]+}\n", "", help_text, flags=re.MULTILINE)
        return help_text

    def error(self, message: str) -> None:  # noqa: D401 - match argparse signature
        self.print_usage(sys.stderr)
        template = self._messages.get("cli_error", "Error: {error}")
        self.exit(EXIT_USAGE, template.format(error=message) + "\n")


def parse_peer_address(raw: str) -> Optional[Tuple[str, Optional[int]]]:
    """Validate ``HOST``, ``HOST:PORT``, ``[IPv6]`` or ``[IPv6]:PORT``.

    Returns ``(host, port)`` with ``port`` None when omitted, or None if the
    input is not a usable address.
    """

    text = raw.strip()
    if not text:
        return None
    port: Optional[int] = None
    if text.startswith("["):
        closing = text.find("]")
        if closing == -1:
            return None
        host_part = text[1:closing].strip()
        remainder = text[closing + 1 :].strip()
        if remainder:
            if not remainder.startswith(":"):
                return None
            port_text = remainder[1:].strip()
            if not port_text.isdigit():
                return None
            port = int(port_text)
        try:
            host = ipaddress.ip_address(host_part).compressed
        except ValueError:
            return None
    else:
        host = text
        if text.count(":") == 1:
            host, port_text = (part.strip() for part in text.split(":", 1))
            if not port_text.isdigit():
                return None
            port = int(port_text)
        try:
            host = ipaddress.ip_address(host).compressed
        except ValueError:
            if not _HOSTNAME_PATTERN.match(host):
                return None
    if port is not None and not (1 <= port <= 65535):
        return None
    return host, port


def code_completions(wordlist: Wordlist, text: str, cursor: Optional[int] = None) -> List[str]:
    """Complete the password word under ``cursor`` in a ``<nameplate>-<words>`` code.

    ``cursor`` is an offset into ``text`` and defaults to its end.
    """

    nameplate, separator, rest = text.partition("-")
    if not separator or not nameplate.isdigit():
        return []
    position = None if cursor is None else cursor - len(nameplate) - 1
    if position is not None and position < 0:
        return []
    return [f"{nameplate}-{completion}" for completion in wordlist.get_completions(rest, position)]


def install_code_completion(wordlist: Wordlist) -> bool:
    """Enable tab completion of code words on platforms that ship readline."""

    try:
        import readline
    except ImportError:
        return False

    matches: List[str] = []

    def complete(text: str, state: int) -> Optional[str]:
        if state == 0:
            begin = readline.get_begidx()
            token = readline.get_line_buffer()[begin:].split(" ", 1)[0]
            matches[:] = code_completions(wordlist, token, readline.get_endidx() - begin)
        return matches[state] if state < len(matches) else None

    readline.set_completer_delims(" \t\n")
    readline.set_completer(complete)
    readline.parse_and_bind("tab: complete")
    return True


def prompt_code(ui: TerminalUI, language: str) -> Optional[str]:
    install_code_completion(default_wordlist(2))
    flush_input_buffer()
    try:
        code = ui.input(render_message("prompt_code", language)).strip()
    except (KeyboardInterrupt, EOFError):
        ui.blank()
        return None
    return code or None


def initialize_application(verbosity: int) -> Tuple[AppConfig, TerminalUI, str]:
    configure_logging(verbosity)
    config = load_config()
    ui = TerminalUI()
    language = config.language if config.language in LANGUAGES else "en"
    return config, ui, language


def build_session_config(
    config: AppConfig,
    *,
    qr: bool = False,
    clipboard: bool = False,
    auto_accept: bool = False,
) -> SessionConfig:
    return SessionConfig(
        qr_enabled=qr or config.qr_enabled,
        clipboard_enabled=clipboard or config.clipboard_enabled,
        auto_accept=auto_accept or config.auto_accept,
        cancel_grace_period=config.cancel_grace_period,
    )


def run_session(
    engine: LanTransferEngine,
    ui: TerminalUI,
    language: str,
    session_config: SessionConfig,
    role: Role,
    payload: PayloadDescriptor,
    code: Optional[str] = None,
) -> int:
    monitor = CancellationMonitor(ui=ui, language=language)
    with monitor as token:
        controller = SessionController(engine, ui, language, session_config, token)
        result = controller.run(role, payload, code)
    logger.info(
        "session finished: %s (%s)",
        result.state.value,
        result.error_kind.value if isinstance(result.error_kind, ErrorKind) else "ok",
    )
    return exit_code_for(result)


def _resolve_code_length(
    ui: TerminalUI, language: str, config: AppConfig, value: Optional[int]
) -> Optional[int]:
    length = config.code_length if value is None else value
    if not MIN_CODE_LENGTH <= length <= MAX_CODE_LENGTH:
        show_message(ui, "code_length_invalid", language, low=MIN_CODE_LENGTH, high=MAX_CODE_LENGTH)
        return None
    return length


def _resolve_port(
    ui: TerminalUI, language: str, config: AppConfig, value: Optional[int]
) -> Tuple[bool, Optional[int]]:
    if value is None:
        return True, config.transit_port
    if not 0 <= value <= 65535:
        show_message(ui, "port_invalid", language, value=value)
        return False, None
    return True, value


def run_send_command(
    path_arg: str,
    *,
    directory_only: bool = False,
    qr: bool = False,
    clipboard: bool = False,
    code_length: Optional[int] = None,
    port: Optional[int] = None,
    verbosity: int = 0,
) -> int:
    config, ui, language = initialize_application(verbosity)
    path = Path(path_arg).expanduser()
    if not path.exists():
        show_message(ui, "file_not_found", language, path=path)
        return EXIT_USAGE
    if directory_only and not path.is_dir():
        show_message(ui, "not_a_directory", language, path=path)
        return EXIT_USAGE
    length = _resolve_code_length(ui, language, config, code_length)
    if length is None:
        return EXIT_USAGE
    port_ok, bind_port = _resolve_port(ui, language, config, port)
    if not port_ok:
        return EXIT_USAGE

    payload = PayloadDescriptor.for_directory(path) if path.is_dir() else PayloadDescriptor.for_file(path)
    engine = LanTransferEngine(code_length=length, port=bind_port)
    session_config = build_session_config(config, qr=qr, clipboard=clipboard)
    return run_session(engine, ui, language, session_config, Role.SEND, payload)


def run_send_text_command(
    text_arg: Optional[str],
    *,
    qr: bool = False,
    clipboard: bool = False,
    code_length: Optional[int] = None,
    port: Optional[int] = None,
    verbosity: int = 0,
) -> int:
    config, ui, language = initialize_application(verbosity)
    text = text_arg
    if text is None:
        try:
            text = ui.input(render_message("prompt_text", language))
        except (KeyboardInterrupt, EOFError):
            ui.blank()
            show_message(ui, "operation_cancelled", language)
            return EXIT_CANCELLED
    if not text or not text.strip():
        show_message(ui, "text_empty", language)
        return EXIT_USAGE
    length = _resolve_code_length(ui, language, config, code_length)
    if length is None:
        return EXIT_USAGE
    port_ok, bind_port = _resolve_port(ui, language, config, port)
    if not port_ok:
        return EXIT_USAGE

    engine = LanTransferEngine(code_length=length, port=bind_port)
    session_config = build_session_config(config, qr=qr, clipboard=clipboard)
    return run_session(engine, ui, language, session_config, Role.SEND, PayloadDescriptor.for_text(text))


def run_receive_command(
    code_arg: Optional[str],
    *,
    dir_arg: Optional[str] = None,
    assume_yes: bool = False,
    peer_arg: Optional[str] = None,
    verbosity: int = 0,
) -> int:
    config, ui, language = initialize_application(verbosity)
    static_peer = None
    if peer_arg is not None:
        static_peer = parse_peer_address(peer_arg)
        if static_peer is None:
            show_message(ui, "peer_invalid", language, value=peer_arg)
            return EXIT_USAGE
    try:
        destination = resolve_download_dir(config, dir_arg)
    except OSError as exc:
        show_message(ui, "receive_dir_error", language, error=exc)
        return EXIT_FAILED

    code = code_arg.strip() if code_arg else None
    if not code:
        code = prompt_code(ui, language)
        if not code:
            show_message(ui, "operation_cancelled", language)
            return EXIT_CANCELLED

    engine = LanTransferEngine(static_peer=static_peer)
    session_config = build_session_config(config, auto_accept=assume_yes)
    return run_session(
        engine,
        ui,
        language,
        session_config,
        Role.RECEIVE,
        PayloadDescriptor.for_destination(destination),
        code,
    )


def _display_bool(value: bool) -> str:
    return "on" if value else "off"


def run_settings_command(
    language_arg: Optional[str] = None,
    qr_arg: Optional[str] = None,
    clipboard_arg: Optional[str] = None,
    auto_accept_arg: Optional[str] = None,
    download_dir_arg: Optional[str] = None,
    grace_arg: Optional[float] = None,
    code_length_arg: Optional[int] = None,
    port_arg: Optional[int] = None,
    *,
    verbosity: int = 0,
) -> int:
    config, ui, language = initialize_application(verbosity)
    exit_code = EXIT_OK
    changed: List[Tuple[str, str]] = []

    if language_arg is not None:
        candidate = language_arg.strip().lower()
        if candidate not in LANGUAGES:
            codes = ", ".join(sorted(LANGUAGES))
            show_message(ui, "settings_language_invalid", language, value=language_arg, codes=codes)
            exit_code = EXIT_USAGE
        else:
            config.language = candidate
            language = candidate
            changed.append(("language", candidate))

    for name, raw, attribute in (
        ("qr", qr_arg, "qr_enabled"),
        ("clipboard", clipboard_arg, "clipboard_enabled"),
        ("auto_accept", auto_accept_arg, "auto_accept"),
    ):
        if raw is None:
            continue
        value = normalize_on_off(raw)
        if value is None:
            show_message(ui, "settings_value_invalid", language, name=name, value=raw)
            exit_code = EXIT_USAGE
            continue
        setattr(config, attribute, value)
        changed.append((name, _display_bool(value)))

    if download_dir_arg is not None:
        if not download_dir_arg.strip():
            config.download_dir = None
            changed.append(("download_dir", get_message("settings_unset", language)))
        else:
            directory = Path(download_dir_arg).expanduser().resolve()
            if directory.exists() and not directory.is_dir():
                show_message(ui, "not_a_directory", language, path=directory)
                exit_code = EXIT_USAGE
            else:
                config.download_dir = str(directory)
                changed.append(("download_dir", str(directory)))

    if grace_arg is not None:
        if grace_arg <= 0:
            show_message(ui, "settings_value_invalid", language, name="grace", value=grace_arg)
            exit_code = EXIT_USAGE
        else:
            config.cancel_grace_period = float(grace_arg)
            changed.append(("grace", f"{float(grace_arg):g}s"))

    if code_length_arg is not None:
        if not MIN_CODE_LENGTH <= code_length_arg <= MAX_CODE_LENGTH:
            show_message(ui, "code_length_invalid", language, low=MIN_CODE_LENGTH, high=MAX_CODE_LENGTH)
            exit_code = EXIT_USAGE
        else:
            config.code_length = code_length_arg
            changed.append(("code_length", str(code_length_arg)))

    if port_arg is not None:
        if not 0 <= port_arg <= 65535:
            show_message(ui, "port_invalid", language, value=port_arg)
            exit_code = EXIT_USAGE
        elif port_arg == 0:
            config.transit_port = None
            changed.append(("transit_port", get_message("settings_unset", language)))
        else:
            config.transit_port = port_arg
            changed.append(("transit_port", str(port_arg)))

    if changed:
        save_config(config)
        for name, value in changed:
            show_message(ui, "settings_updated", language, name=name, value=value)
        return exit_code
    if exit_code != EXIT_OK:
        return exit_code

    unset = get_message("settings_unset", language)
    show_message(ui, "settings_header", language)
    entries = [
        ("language", config.language or unset),
        ("qr", _display_bool(config.qr_enabled)),
        ("clipboard", _display_bool(config.clipboard_enabled)),
        ("auto_accept", _display_bool(config.auto_accept)),
        ("download_dir", config.download_dir or unset),
        ("grace", f"{config.cancel_grace_period:g}s"),
        ("code_length", str(config.code_length)),
        ("transit_port", str(config.transit_port) if config.transit_port else unset),
    ]
    for name, value in entries:
        show_message(ui, "settings_entry", language, name=name, value=value)
    return EXIT_OK


def _add_subparser(
    subparsers,
    name: str,
    prog: str,
    language: str,
    help_key: str,
    usage_key: str,
) -> LocalizedArgumentParser:
    language_messages = MESSAGES.get(language, MESSAGES["en"])
    sub = subparsers.add_parser(
        name,
        help=get_message(help_key, language),
        description=get_message(help_key, language),
        add_help=False,
        messages=language_messages,
    )
    sub.prog = f"{prog} {name}"
    sub.usage = get_message(usage_key, language)
    sub._positionals.title = get_message("cli_positionals_title", language)
    sub._optionals.title = get_message("cli_optionals_title", language)
    sub.add_argument(
        "-h",
        "--help",
        action="help",
        help=get_message("cli_help_help", language),
    )
    sub.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help=get_message("cli_verbose_help", language),
    )
    return sub


def _add_code_arguments(sub: argparse.ArgumentParser, language: str) -> None:
    sub.add_argument(
        "--qr",
        action="store_true",
        help=get_message("cli_qr_help", language),
    )
    sub.add_argument(
        "--clipboard",
        action="store_true",
        help=get_message("cli_clipboard_help", language),
    )
    sub.add_argument(
        "--code-length",
        type=int,
        metavar="N",
        help=get_message("cli_code_length_help", language),
    )
    sub.add_argument(
        "--port",
        type=int,
        metavar="N",
        help=get_message("cli_port_help", language),
    )


def build_parser(language: str) -> argparse.ArgumentParser:
    language_messages = MESSAGES.get(language, MESSAGES["en"])
    language_codes = ", ".join(sorted(LANGUAGES))
    parser = LocalizedArgumentParser(
        prog="burrow",
        description=get_message("cli_description", language),
        add_help=False,
        messages=language_messages,
    )
    parser.usage = get_message("cli_usage", language)
    parser._positionals.title = get_message("cli_positionals_title", language)
    parser._optionals.title = get_message("cli_optionals_title", language)
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        help=get_message("cli_help_help", language),
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help=get_message("cli_version_help", language),
        version=get_message("cli_version_output", language, version=__version__),
    )
    subparsers = parser.add_subparsers(
        dest="command",
        title=get_message("cli_commands_title", language),
        parser_class=LocalizedArgumentParser,
    )
    subparsers.metavar = None

    send_parser = _add_subparser(subparsers, "send", parser.prog, language, "cli_send_help", "cli_send_usage")
    send_parser.add_argument("path", help=get_message("cli_send_path_help", language))
    _add_code_arguments(send_parser, language)

    send_dir_parser = _add_subparser(
        subparsers, "send-dir", parser.prog, language, "cli_send_dir_help", "cli_send_dir_usage"
    )
    send_dir_parser.add_argument("path", help=get_message("cli_send_dir_path_help", language))
    _add_code_arguments(send_dir_parser, language)

    send_text_parser = _add_subparser(
        subparsers, "send-text", parser.prog, language, "cli_send_text_help", "cli_send_text_usage"
    )
    send_text_parser.add_argument(
        "text",
        nargs="?",
        help=get_message("cli_send_text_arg_help", language),
    )
    _add_code_arguments(send_text_parser, language)

    receive_parser = _add_subparser(
        subparsers, "receive", parser.prog, language, "cli_receive_help", "cli_receive_usage"
    )
    receive_parser.add_argument(
        "code",
        nargs="?",
        help=get_message("cli_receive_code_help", language),
    )
    receive_parser.add_argument(
        "--dir",
        help=get_message("cli_receive_dir_help", language),
    )
    receive_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help=get_message("cli_receive_yes_help", language),
    )
    receive_parser.add_argument(
        "--peer",
        metavar="HOST[:PORT]",
        help=get_message("cli_receive_peer_help", language),
    )

    settings_parser = _add_subparser(
        subparsers, "settings", parser.prog, language, "cli_settings_help", "cli_settings_usage"
    )
    settings_parser.add_argument(
        "--language",
        help=get_message("cli_settings_language_help", language, codes=language_codes),
    )
    settings_parser.add_argument(
        "--qr",
        metavar="on|off",
        help=get_message("cli_settings_qr_help", language),
    )
    settings_parser.add_argument(
        "--clipboard",
        metavar="on|off",
        help=get_message("cli_settings_clipboard_help", language),
    )
    settings_parser.add_argument(
        "--auto-accept",
        metavar="on|off",
        help=get_message("cli_settings_auto_accept_help", language),
    )
    settings_parser.add_argument(
        "--download-dir",
        metavar="PATH",
        help=get_message("cli_settings_download_dir_help", language),
    )
    settings_parser.add_argument(
        "--grace",
        type=float,
        metavar="SECONDS",
        help=get_message("cli_settings_grace_help", language),
    )
    settings_parser.add_argument(
        "--code-length",
        type=int,
        metavar="N",
        help=get_message("cli_settings_code_length_help", language),
    )
    settings_parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help=get_message("cli_settings_port_help", language),
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    arguments = sys.argv[1:] if argv is None else argv
    config = load_config()
    language = config.language if config.language in LANGUAGES else "en"
    parser = build_parser(language)
    if not arguments:
        parser.print_help()
        return EXIT_USAGE
    args = parser.parse_args(arguments)
    command = getattr(args, "command", None)
    verbosity = int(getattr(args, "verbose", 0) or 0)
    if command in {"send", "send-dir"}:
        return run_send_command(
            args.path,
            directory_only=command == "send-dir",
            qr=args.qr,
            clipboard=args.clipboard,
            code_length=args.code_length,
            port=args.port,
            verbosity=verbosity,
        )
    if command == "send-text":
        return run_send_text_command(
            args.text,
            qr=args.qr,
            clipboard=args.clipboard,
            code_length=args.code_length,
            port=args.port,
            verbosity=verbosity,
        )
    if command == "receive":
        return run_receive_command(
            args.code,
            dir_arg=args.dir,
            assume_yes=args.yes,
            peer_arg=args.peer,
            verbosity=verbosity,
        )
    if command == "settings":
        return run_settings_command(
            args.language,
            args.qr,
            args.clipboard,
            args.auto_accept,
            args.download_dir,
            args.grace,
            args.code_length,
            args.port,
            verbosity=verbosity,
        )
    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
