import argparse
import json
import logging
import sys

from models import ParseMode, ParseProgress
from settings import settings
from stream_driver import parse_file


def print_progress(progress: ParseProgress) -> None:
    c = progress.counts
    print(
        f"Parsing... {round(progress.fraction_complete * 100)}% "
        f"({c.workouts} workouts, {c.hr_records} HR records, {c.step_records} step records)",
        file=sys.stderr,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract workouts from an Apple Health export.xml / export.zip",
    )
    parser.add_argument("export_path", help="Path to export.xml or export.zip")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ParseMode],
        default=settings.default_parse_mode,
        help="fast = workouts only, detailed = + heart rate and steps (default: %(default)s)",
    )
    parser.add_argument("--output", help="Write the JSON result here instead of stdout")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)-8s  %(message)s")

    print(f"Parsing Apple Health export: {args.export_path} ({args.mode} mode)", file=sys.stderr)
    try:
        workouts = parse_file(args.export_path, ParseMode(args.mode), on_progress=print_progress)
    except Exception as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1

    payload = json.dumps([w.to_output() for w in workouts], indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload)
        print(f"Wrote {len(workouts)} workouts to {args.output}", file=sys.stderr)
    else:
        print(payload)
        print(f"Found {len(workouts)} workouts.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
