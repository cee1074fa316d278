"""Interactive operator console for the running scanner."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
import os

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from tabscan.datatypes.errors import TabScanError
from tabscan.datatypes.moderation_datatypes import ScanResult
from tabscan.moderation.report_formatter import format_nickname_check, format_report, format_status
from tabscan.util.logger import get_logger

BOX_WIDTH = 45


def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝",
    ]


logger = get_logger("console")

CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


class ConsoleControl:
    """Lifecycle flags plus the runtime components the console commands act on.

    ``orchestrator`` and ``supervisor`` are attached once the runtime is built;
    commands that need them report "not initialized" until then.
    """

    def __init__(self, orchestrator=None, supervisor=None) -> None:
        self.shutdown_event = asyncio.Event()
        self.restart_event = asyncio.Event()
        self.orchestrator = orchestrator
        self.supervisor = supervisor

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def request_restart(self) -> None:
        self.restart_event.set()

    def stop(self) -> None:
        self.shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()

    def is_restart_requested(self) -> bool:
        return self.restart_event.is_set()


def print_block(text: str) -> None:
    for line in text.splitlines() or [""]:
        console_print(f"  {line}")
    console_print("")


def print_scan(title: str, result: ScanResult) -> None:
    for line in box_title(title):
        console_print(line, "ansiblue")
    print_block(format_report(result))


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """Display available commands and their descriptions."""
    for line in box_title("Console Commands Reference"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Display game session, AI and last scan information."""
    if control.orchestrator is None or control.supervisor is None:
        console_print("Scanner not initialized.", "ansiyellow")
        return

    for line in box_title("Scanner Status"):
        console_print(line, "ansiblue")

    supervisor = control.supervisor
    orchestrator = control.orchestrator
    print_block(
        format_status(
            state=supervisor.state,
            username=supervisor.username,
            version=supervisor.settings.version,
            ai_available=orchestrator.ai_available,
            last_scan=orchestrator.last_scan,
            last_error=supervisor.last_error,
            scanning=orchestrator.is_scanning(),
        )
    )


async def cmd_scan(control: ConsoleControl, args: list[str]) -> None:
    """Run a scan of the online players."""
    if control.orchestrator is None:
        console_print("Scanner not initialized.", "ansiyellow")
        return

    console_print("Scanning online players...", "ansibrightblack")
    try:
        result = await control.orchestrator.scan()
    except TabScanError as exc:
        console_print(str(exc), "ansiyellow")
        return
    print_scan("Scan Report", result)


async def cmd_ai(control: ConsoleControl, args: list[str]) -> None:
    """Send the REVIEW list of the last scan to the AI."""
    if control.orchestrator is None:
        console_print("Scanner not initialized.", "ansiyellow")
        return

    budget = None
    if args:
        try:
            budget = int(args[0])
        except ValueError:
            console_print(f"Invalid limit '{args[0]}'. Usage: ai [limit]", "ansired")
            return

    console_print("Asking the AI about REVIEW nicknames...", "ansibrightblack")
    try:
        result = await control.orchestrator.escalate_last_scan(budget)
    except TabScanError as exc:
        console_print(str(exc), "ansiyellow")
        return
    print_scan("AI Review Report", result)


async def cmd_check(control: ConsoleControl, args: list[str]) -> None:
    """Classify one nickname."""
    if control.orchestrator is None:
        console_print("Scanner not initialized.", "ansiyellow")
        return
    if not args:
        console_print("Usage: check <nickname>", "ansired")
        return

    try:
        check = await control.orchestrator.check_nickname(" ".join(args))
    except TabScanError as exc:
        console_print(str(exc), "ansiyellow")
        return
    print_block(format_nickname_check(check))


async def cmd_reload(control: ConsoleControl, args: list[str]) -> None:
    """Reload the rules file."""
    if control.orchestrator is None:
        console_print("Scanner not initialized.", "ansiyellow")
        return

    rule_set = control.orchestrator.reload_rules()
    console_print(
        f"Rules reloaded from {rule_set.source}: {len(rule_set.rules)} rules, "
        f"{len(rule_set.review)} review words, {len(rule_set.whitelist_exact)} whitelisted.",
        "ansigreen",
    )


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    """Clear the console screen."""
    os.system('cls' if os.name == 'nt' else 'clear')
    console_print("Console cleared.", "ansigreen")


async def cmd_restart(control: ConsoleControl, args: list[str]) -> None:
    console_print("Restart requested. Scanner will shut down and restart...", "ansiyellow")
    control.request_restart()
    control.request_shutdown()


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    console_print("Shutdown requested.", "ansiyellow")
    control.request_shutdown()


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command(
        name="help",
        handler=cmd_help,
        aliases=["h", "?"],
        description="Show this help message with all available commands",
    ),
    Command(
        name="status",
        handler=cmd_status,
        aliases=["stat", "info"],
        description="Show game session state, AI availability and the last scan",
    ),
    Command(
        name="scan",
        handler=cmd_scan,
        aliases=["s"],
        description="Scan the online players and classify their nicknames",
    ),
    Command(
        name="ai",
        handler=cmd_ai,
        aliases=["review"],
        description="Send the REVIEW list of the last scan to the AI",
        usage="ai [limit]",
    ),
    Command(
        name="check",
        handler=cmd_check,
        aliases=["c"],
        description="Classify a single nickname with the rules and the AI",
        usage="check <nickname>",
    ),
    Command(
        name="reload",
        handler=cmd_reload,
        aliases=["rules"],
        description="Reload the rules file without restarting",
    ),
    Command(
        name="clear",
        handler=cmd_clear,
        aliases=["cls"],
        description="Clear the console screen",
    ),
    Command(
        name="restart",
        handler=cmd_restart,
        aliases=["reboot"],
        description="Fully restart the scanner process",
    ),
    Command(
        name="shutdown",
        handler=cmd_shutdown,
        aliases=["stop", "quit", "exit"],
        description="Gracefully shut down the scanner",
    ),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session = PromptSession("> ")

    for line in box_title("TabScan Interactive Console"):
        console_print(line, "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                control.request_shutdown()
                break
            except Exception as exc:  # pragma: no cover - keeps the prompt alive
                logger.exception("Error in console input loop: %s", exc)
                console_print(f"Error: {exc}", "ansired")


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console in the background, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.stop()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
