#!/usr/bin/env python
"""Run ShapeDiff comparison datasets from command line."""

import argparse
import json
import logging
import sys
from pathlib import Path

from shapediff import EngineConfig, LogLevel, ProfileError, run_comparisons


def main():
    parser = argparse.ArgumentParser(
        description="Compare reference and candidate payloads from dataset files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_comparisons.py profile.yaml report.json datasets/
  python run_comparisons.py -p profile.yaml -r report.json -d datasets/ --workers 4
  python run_comparisons.py --report report.json --datasets datasets/ --log-level DEBUG
        """
    )

    parser.add_argument(
        "profile",
        nargs="?",
        help="Path to YAML comparison profile"
    )
    parser.add_argument(
        "report",
        nargs="?",
        help="Path to output JSON report file"
    )
    parser.add_argument(
        "datasets",
        nargs="?",
        help="Path to folder containing dataset JSON files"
    )

    # Also support named arguments
    parser.add_argument("-p", "--profile", dest="profile_named", help="Path to profile file")
    parser.add_argument("-r", "--report", dest="report_named", help="Path to output report")
    parser.add_argument("-d", "--datasets", dest="datasets_named", help="Path to datasets folder")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress console output")
    parser.add_argument("-w", "--workers", type=int, default=1, help="Datasets compared in parallel")
    parser.add_argument("--timeout", type=int, default=30, help="Overall deadline in seconds")
    parser.add_argument("--max-depth", type=int, default=300, help="Maximum graph depth")
    parser.add_argument("--trace", action="store_true", help="Record rule application traces")
    parser.add_argument(
        "--log-level",
        choices=[level.name for level in LogLevel],
        default=LogLevel.WARN.name,
        help="Logging level"
    )

    args = parser.parse_args()

    # Use named args if positional not provided
    profile_path = args.profile or args.profile_named
    report_path = args.report or args.report_named
    datasets_path = args.datasets or args.datasets_named

    if not report_path:
        parser.error("Report path is required")
    if not datasets_path:
        parser.error("Datasets path is required")

    log_level = LogLevel[args.log_level]
    logging.basicConfig(
        level=log_level.value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if profile_path and not Path(profile_path).exists():
        print(f"Error: Profile file not found: {profile_path}", file=sys.stderr)
        return 1

    if not Path(datasets_path).is_dir():
        print(f"Error: Datasets folder not found: {datasets_path}", file=sys.stderr)
        return 1

    config = EngineConfig(
        max_depth=args.max_depth,
        trace_rule_application=args.trace,
        timeout_seconds=args.timeout,
        log_level=log_level
    )

    if not args.quiet:
        print(f"Profile: {profile_path or '(none)'}")
        print(f"Datasets: {datasets_path}")
        print(f"Report: {report_path}\n")

    try:
        report = run_comparisons(
            profile_path=profile_path,
            folder=datasets_path,
            engine_config=config,
            workers=args.workers,
            print_report=not args.quiet
        )
    except ProfileError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if e.details:
            print(f"  {json.dumps(e.details, default=str)}", file=sys.stderr)
        return 1

    with open(report_path, 'w') as f:
        json.dump(report.to_dict(), indent=2, fp=f)

    if not args.quiet:
        print(f"\nReport saved to: {report_path}")

    return 0 if report.failed == 0 and report.errors == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
