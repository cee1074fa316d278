"""
TabScan
=======

A headless Minecraft moderation helper. It keeps one bot account logged into a
server, enumerates online players through tab completion and classifies their
nicknames as BAN / REVIEW / OK with configurable rules and an optional AI tier.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. TABSCAN_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("TABSCAN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import signal
from dataclasses import dataclass

from dotenv import load_dotenv

from tabscan.ai.ai_arbitrator import AIArbitrator
from tabscan.configuration.app_configuration import AppConfig
from tabscan.configuration.rule_loader import RuleSetStore
from tabscan.datatypes.errors import ConfigError
from tabscan.datatypes.moderation_datatypes import ScanResult
from tabscan.minecraft.connection_supervisor import ConnectionSupervisor
from tabscan.minecraft.player_enumerator import PlayerEnumerator
from tabscan.moderation.escalation_pipeline import EscalationPipeline
from tabscan.scheduler.auto_scan_scheduler import AutoScanScheduler
from tabscan.services.scan_orchestrator import ScanOrchestrator
from tabscan.ui.console import ConsoleControl, console_session
from tabscan.util.logger import get_logger, handle_exception

logger = get_logger("main")

RESTART_EXIT_CODE = 42


@dataclass
class Runtime:
    """Every long-lived component of one process run."""
    supervisor: ConnectionSupervisor
    orchestrator: ScanOrchestrator
    scheduler: AutoScanScheduler


def load_environment() -> AppConfig:
    """Load ``.env`` and the YAML configuration from the base directory."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    return AppConfig(BASE_DIR / "config" / "app_config.yml")


async def log_scheduled_result(result: ScanResult) -> None:
    logger.info(
        "[AUTO_SCAN] %d online: %d BAN, %d REVIEW, %d OK",
        result.total_players,
        len(result.ban_list),
        len(result.review_list),
        len(result.ok_list),
    )
    for verdict in result.ban_list:
        logger.warning("[AUTO_SCAN] BAN %s (%s)", verdict.nickname, verdict.reason)


def build_runtime(config: AppConfig) -> Runtime:
    """Wire the scanner components together.

    Raises
    ------
    ConfigError
        If the connection or scan settings are missing or malformed.
    """
    connection = config.connection_settings()
    scan = config.scan_settings()
    ai_settings = config.ai_settings
    ai_settings.validate()

    rules_path = scan.rules_path if scan.rules_path.is_absolute() else BASE_DIR / scan.rules_path
    rule_store = RuleSetStore(rules_path)

    supervisor = ConnectionSupervisor(connection)
    enumerator = PlayerEnumerator(
        supervisor,
        prefixes=scan.prefixes,
        completion_command=scan.completion_command,
        request_timeout=scan.request_timeout,
        inter_prefix_delay=scan.prefix_delay,
    )
    arbitrator = AIArbitrator(ai_settings)
    pipeline = EscalationPipeline(
        rule_store,
        arbitrator,
        ban_threshold=ai_settings.ban_threshold,
        ok_threshold=ai_settings.ok_threshold,
        ai_delay=ai_settings.request_delay,
    )
    orchestrator = ScanOrchestrator(
        supervisor,
        enumerator,
        pipeline,
        rule_store,
        arbitrator,
        scan_ai_budget=scan.ai_budget,
        review_budget=ai_settings.budget_per_request,
    )
    scheduler = AutoScanScheduler(orchestrator, scan.interval, on_result=log_scheduled_result)
    return Runtime(supervisor=supervisor, orchestrator=orchestrator, scheduler=scheduler)


def install_signal_handlers(control: ConsoleControl) -> None:
    """Turn SIGINT/SIGTERM into a graceful shutdown request."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, control.request_shutdown)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers
            logger.debug("Signal handler for %s not supported on this platform", sig)


async def shutdown_runtime(runtime: Runtime) -> None:
    """Stop the scheduler and the game connection."""
    try:
        await runtime.scheduler.shutdown()
    except Exception as exc:
        logger.exception("Error during scheduler shutdown: %s", exc)

    try:
        await runtime.supervisor.stop()
    except Exception as exc:
        logger.exception("Error during connection shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def run_session(runtime: Runtime, control: ConsoleControl, *, interactive: bool) -> None:
    """Run until the console or a signal requests shutdown."""
    runtime.supervisor.start()
    runtime.scheduler.start()
    try:
        if interactive:
            async with console_session(control):
                await control.shutdown_event.wait()
        else:
            logger.info("No terminal attached; running headless until SIGINT/SIGTERM")
            await control.shutdown_event.wait()
    finally:
        await shutdown_runtime(runtime)


async def async_main() -> int:
    """Bootstrap the scanner and return a process exit code."""
    config = load_environment()

    try:
        runtime = build_runtime(config)
    except ConfigError as exc:
        logger.critical("Invalid configuration: %s", exc)
        return 1

    control = ConsoleControl(orchestrator=runtime.orchestrator, supervisor=runtime.supervisor)
    install_signal_handlers(control)
    await run_session(runtime, control, interactive=sys.stdin.isatty())

    if control.is_restart_requested():
        logger.info("Restart requested, returning exit code %d to trigger restart", RESTART_EXIT_CODE)
        return RESTART_EXIT_CODE
    return 0


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code.

    Returns
    -------
    int
        Exit code propagated to the operating system. Returns 42 to trigger a restart.
    """
    sys.excepthook = handle_exception
    os.chdir(BASE_DIR)
    logger.info("Starting TabScan…")
    try:
        exit_code = asyncio.run(async_main())

        if exit_code == RESTART_EXIT_CODE:
            logger.info("Restart requested; replacing current process with new instance.")
            # execv keeps stdin/stdout so the console keeps working after restart
            os.execv(sys.executable, [sys.executable] + sys.argv)
            return 0  # pragma: no cover

        return exit_code
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the scanner: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
