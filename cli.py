import argparse
import asyncio
import logging
import sys

from algorithms import WeightConverter
from app import FitnessApp, make_client
from config import APP_VERSION, load_app_config
from migrate import clear_all_data, run_migrations
from rest_timer import RestTimer


def run_migrate(cfg) -> bool:
    return asyncio.run(run_migrations(make_client(cfg), cfg.user_id))


def clear_data(cfg) -> bool:
    return asyncio.run(clear_all_data(make_client(cfg), cfg.user_id))


def init_app(cfg) -> FitnessApp:
    """Run startup and print what ended up in each store."""
    app = FitnessApp(cfg)
    init = asyncio.run(app.start())
    print(f"Exercises: {len(app.exercise_store.exercises)}")
    print(f"Workouts: {len(app.workout_store.workouts)}")
    print(f"Tracked exercises: {len(app.progress_store.progress_exercises)}")
    print(f"Theme: {app.settings_store.theme}, unit: {app.settings_store.default_weight_unit}")
    if init.error:
        print(f"Error: {init.error}")
    return app


def show_stats(cfg) -> None:
    app = FitnessApp(cfg)
    asyncio.run(app.progress_store.load())
    progress = app.progress_store
    for label, stats in (
        ("This week", progress.get_weekly_stats()),
        ("This month", progress.get_monthly_stats()),
    ):
        print(
            f"{label}: {stats['workouts']} workouts, "
            f"{stats['total_sets']} sets, {stats['total_reps']} reps"
        )
    print(f"Streak: {progress.workout_streak} day(s)")


def flush(cfg) -> None:
    app = FitnessApp(cfg)
    for name, count in asyncio.run(app.flush()).items():
        pending = len(next(s for s in app.stores if s.name == name).outbox)
        print(f"{name}: replayed {count}, pending {pending}")


def run_timer(seconds: int) -> None:
    timer = RestTimer(seconds, on_expire=lambda t: print("Rest Complete!"))
    timer.subscribe(lambda t: print(f"\r{t.label}", end="", flush=True))
    try:
        asyncio.run(timer.run())
    except KeyboardInterrupt:
        print()
    finally:
        timer.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fitness tracker utilities")
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--version", action="version", version=APP_VERSION)
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("migrate")
    sub.add_parser("clear")
    sub.add_parser("init")
    sub.add_parser("stats")
    sub.add_parser("flush")

    timer = sub.add_parser("timer")
    timer.add_argument("--seconds", type=int, default=None)

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lbs"], required=True)

    args = parser.parse_args(argv)

    if args.cmd == "convert":
        other = "lbs" if args.unit == "kg" else "kg"
        converted = WeightConverter.convert(args.weight, args.unit, other)
        print(f"{args.weight} {args.unit} = {converted} {other}")
        return 0

    cfg = load_app_config(args.config)
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.cmd == "migrate":
        return 0 if run_migrate(cfg) else 1
    elif args.cmd == "clear":
        return 0 if clear_data(cfg) else 1
    elif args.cmd == "init":
        init_app(cfg)
    elif args.cmd == "stats":
        show_stats(cfg)
    elif args.cmd == "flush":
        flush(cfg)
    elif args.cmd == "timer":
        run_timer(args.seconds or cfg.rest_timer_seconds)
    return 0


if __name__ == "__main__":
    sys.exit(main())
