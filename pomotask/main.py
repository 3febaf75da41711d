from __future__ import annotations

"""Command line entry point for pomotask.

The ``timer`` command runs a headless Qt event loop around the Pomodoro
controller; ``stats`` and ``export`` print one answer as JSON or CSV.
"""

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from PyQt6.QtCore import QCoreApplication

from pomotask.core import config
from pomotask.core.controller import PomodoroController
from pomotask.core.errors import PomotaskError
from pomotask.core.export import EXPORT_FORMATS, EXPORT_KINDS, DataExporter
from pomotask.core.session_context import LocalIdentity, SessionContext
from pomotask.core.stats_service import StatisticsService
from pomotask.core.timer import TimerPhase
from pomotask.data.repositories import UserRepository
from pomotask.data.storage import LocalStorage, RecordStore


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="{time:HH:mm:ss} | {level: <8} | {message}")


def build_context(data_dir: Path | None = None) -> SessionContext:
    """Open both databases and return a context for the local user."""
    base = Path(data_dir) if data_dir else config.DATA_DIR
    store = RecordStore(base / config.RECORDS_DB.name)
    store.init_db()
    local = LocalStorage(base / config.LOCAL_DB.name)
    local.init_db()
    ctx = SessionContext(identity=LocalIdentity(local), store=store, local=local)
    UserRepository(ctx).ensure()
    return ctx


def _format_seconds(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def run_timer(ctx: SessionContext, args: argparse.Namespace) -> int:
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    controller = PomodoroController(ctx)

    controller.ticked.connect(lambda remaining: print(f"\r{_format_seconds(remaining)}", end="", flush=True))
    controller.pomodoro_completed.connect(lambda session: print(f"\nPomodoro done: {session.duration} min"))
    controller.completion_failed.connect(lambda message: print(f"\nCould not save Pomodoro: {message}"))
    controller.auto_start_failed.connect(lambda message: print(f"\nCould not start next phase: {message}"))
    controller.break_started.connect(
        lambda is_long, minutes: print(f"\n{'Long' if is_long else 'Short'} break: {minutes} min")
    )
    controller.break_finished.connect(lambda: print("\nBreak over"))

    def quit_when_idle() -> None:
        if controller.timer.phase == TimerPhase.COMPLETING and controller.pending_completion is None:
            controller.dismiss_completion()
        elif not controller.is_ticking and controller.timer.phase != TimerPhase.PAUSED:
            app.quit()

    controller.state_changed.connect(quit_when_idle)
    controller.recover()
    if controller.timer.phase == TimerPhase.IDLE:
        controller.start_pomodoro(args.task, args.minutes)
    elif controller.timer.phase == TimerPhase.PAUSED:
        controller.resume()
    if not controller.is_ticking:
        return 1 if controller.pending_completion else 0
    return app.exec()


def run_stats(ctx: SessionContext, args: argparse.Namespace) -> int:
    result = StatisticsService(ctx).handle(args.kind, args.start, args.end)
    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    return 0


def run_export(ctx: SessionContext, args: argparse.Namespace) -> int:
    result = DataExporter(ctx).export(args.kind, args.format)
    if args.output:
        Path(args.output).write_text(result.data, encoding="utf-8")
        logger.info(f"[EXPORT] Wrote {args.output}")
    else:
        print(result.data)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pomotask", description="Pomodoro timer with task tracking")
    parser.add_argument("--home", type=Path, default=None, help="data directory")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    commands = parser.add_subparsers(dest="command", required=True)

    timer = commands.add_parser("timer", help="run a Pomodoro in the terminal")
    timer.add_argument("--minutes", type=int, default=None)
    timer.add_argument("--task", default=None, help="id of the task to bind")
    timer.set_defaults(handler=run_timer)

    stats = commands.add_parser("stats", help="print statistics as JSON")
    stats.add_argument("kind", choices=StatisticsService.KINDS)
    stats.add_argument("--start", default=None)
    stats.add_argument("--end", default=None)
    stats.set_defaults(handler=run_stats)

    export = commands.add_parser("export", help="export data")
    export.add_argument("kind", choices=EXPORT_KINDS)
    export.add_argument("--format", choices=EXPORT_FORMATS, default="json")
    export.add_argument("--output", default=None)
    export.set_defaults(handler=run_export)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        ctx = build_context(args.home)
        return args.handler(ctx, args)
    except PomotaskError as exc:
        logger.error(str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
