"""
Operator command line for the workout data repository.

Usage:
    fitness-data sync
    fitness-data inspect
    fitness-data repair [--branch NAME]
    fitness-data trends [--weeks 4]
    fitness-data weekly [--week 2026-W05]
    fitness-data record weeks/2026-W05/2026-01-30.md
    fitness-data fatigue [--week 2026-W05]
    fitness-data deload [--week 2026-W05] [--reason TEXT]
    fitness-data dismiss-fatigue [--reason TEXT]
"""

import argparse
import logging
import sys

from fitness_data import paths
from fitness_data.config import load_settings
from fitness_data.context import CoachContext
from fitness_data.errors import ConfigError, NotFoundError, StoreError
from fitness_data.jobs import (
    assess_fatigue,
    dismiss_fatigue_warning,
    mark_deload,
    record_workout,
    weekly_analytics,
)
from fitness_data.ledgers import parse_e1rm_history
from fitness_data.workout_log import parse_session

logger = logging.getLogger("fitness_data")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Workout data repository tools.")
    parser.add_argument("--env-file", default=None, help="Path to a .env file.")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="Clone or refresh the local mirror.")
    sub.add_parser("inspect", help="List half-finished workout branches.")

    repair = sub.add_parser("repair", help="Fix anomalies reported by inspect.")
    repair.add_argument("--branch", default=None, help="Only repair this branch.")

    trends = sub.add_parser("trends", help="Print the e1RM trend table.")
    trends.add_argument("--weeks", type=int, default=4, help="Weeks to look back.")

    weekly = sub.add_parser("weekly", help="Print the weekly analytics section.")
    weekly.add_argument("--week", default=None, help="ISO week (default: current week).")

    record = sub.add_parser("record", help="Update PR and e1RM ledgers from a workout document.")
    record.add_argument("path", help="Workout document path in the data repository.")

    fatigue = sub.add_parser("fatigue", help="Score fatigue and update the fatigue ledger.")
    fatigue.add_argument("--week", default=None, help="ISO week (default: current week).")

    deload = sub.add_parser("deload", help="Mark a week as a deload week.")
    deload.add_argument("--week", default=None, help="ISO week (default: current week).")
    deload.add_argument("--reason", default=None, help="Why the deload was taken.")

    dismiss = sub.add_parser("dismiss-fatigue", help="Dismiss the current deload warning.")
    dismiss.add_argument("--reason", default=None, help="Why training continues as planned.")

    return parser.parse_args(argv)


def cmd_sync(ctx, args):
    with ctx.mirror_session() as local_path:
        print(f"Mirror synced at {local_path}")
    return 0


def cmd_inspect(ctx, args):
    anomalies = ctx.sessions.inspect()
    if not anomalies:
        print("✓ No half-finished workout branches")
        return 0
    for anomaly in anomalies:
        print(f"{anomaly.kind:20} {anomaly.branch}  {anomaly.detail}")
        for path in anomaly.paths:
            print(f"{'':20}   {path}")
    return 1


def cmd_repair(ctx, args):
    anomalies = [a for a in ctx.sessions.inspect() if not args.branch or a.branch == args.branch]
    if not anomalies:
        print("Nothing to repair")
        return 0
    failed = 0
    for anomaly in anomalies:
        try:
            print(f"✓ {ctx.sessions.repair(anomaly)}")
        except StoreError as exc:
            failed += 1
            print(f"❌ {anomaly.branch}: {exc}")
    return 1 if failed else 0


def cmd_trends(ctx, args):
    doc = ctx.store.read_e1rm_history()
    history = parse_e1rm_history(doc.content) if doc else {}
    report = ctx.e1rm.trends_report(
        history, weeks_back=args.weeks, today=paths.today(ctx.settings.timezone)
    )
    print(report or "No e1RM data yet")
    return 0


def cmd_weekly(ctx, args):
    today = paths.today(ctx.settings.timezone)
    week = args.week or paths.iso_week(today)
    print(weekly_analytics(ctx, week, today=today if not args.week else None))
    return 0


def cmd_record(ctx, args):
    content = ctx.store.read(args.path)
    if content is None:
        raise NotFoundError(f"File not found: {args.path}")
    session = parse_session(content)
    result = record_workout(ctx, session, workout_ref=args.path)
    print(result.message() or "No PRs this session")
    return 0


def _week(ctx, args):
    return args.week or paths.iso_week(paths.today(ctx.settings.timezone))


def cmd_fatigue(ctx, args):
    analysis = assess_fatigue(ctx, _week(ctx, args))
    emoji = "🔴" if analysis.score >= 7 else "🟡" if analysis.score >= 5 else "🟢"
    print(f"Fatigue score: {analysis.score}/10 {emoji}")
    print(f"Weeks since deload: {analysis.weeks_since_deload}")
    for signal in analysis.signals:
        print(f"- [{signal.severity}] {signal.description}")
    if analysis.recommendation:
        print(f"\n⚠️ {analysis.recommendation}")
    return 0


def cmd_deload(ctx, args):
    week = _week(ctx, args)
    state = mark_deload(ctx, week, reason=args.reason)
    if state is None:
        print(f"Week {week} is already marked as a deload week")
        return 0
    print(f"✓ Week {week} marked as a deload week (fatigue score now {state.current_score}/10)")
    return 0


def cmd_dismiss_fatigue(ctx, args):
    state = dismiss_fatigue_warning(ctx, reason=args.reason)
    if state is None:
        print("No deload warning to dismiss")
        return 0
    print(f"✓ Warning dismissed at fatigue score {state.current_score}/10")
    return 0


COMMANDS = {
    "sync": cmd_sync,
    "inspect": cmd_inspect,
    "repair": cmd_repair,
    "trends": cmd_trends,
    "weekly": cmd_weekly,
    "record": cmd_record,
    "fatigue": cmd_fatigue,
    "deload": cmd_deload,
    "dismiss-fatigue": cmd_dismiss_fatigue,
}


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_settings(env_file=args.env_file, config_path=args.config)
        ctx = CoachContext.from_settings(settings)
    except ConfigError as exc:
        print(f"\n❌ Error: {exc}")
        print("\nPlease:")
        print("1. Copy .env.example to .env")
        print("2. Set GITHUB_TOKEN and DATA_REPO")
        return 2

    try:
        return COMMANDS[args.command](ctx, args)
    except (StoreError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
