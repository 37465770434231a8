#!/usr/bin/env python3
"""
Vitals — Scan an Apple Health Export
════════════════════════════════════
One command to pull weight, body composition, sleep, resting heart rate,
activity, nutrition and workouts out of an Apple Health export.

Usage examples
─────────────
  # Apple Health export.zip straight from the iPhone
  python3 scan_export.py ~/Downloads/export.zip

  # Already-unzipped export.xml, saving the results for the dashboard
  python3 scan_export.py ~/Downloads/apple_health_export/export.xml --output health.json

  # Multi-GB export: show a line counter while scanning
  python3 scan_export.py export.zip --progress
"""

import argparse
import json
import logging
import sys
from pathlib import Path


SERIES_LABELS = (
    ("weight", "Weight"),
    ("body_fat", "Body fat %"),
    ("lean_body_mass", "Lean body mass"),
    ("waist_circumference", "Waist circumference"),
    ("sleep", "Sleep"),
    ("resting_heart_rate", "Resting heart rate"),
    ("steps", "Steps"),
    ("active_energy", "Active energy"),
    ("basal_energy", "Basal energy"),
    ("dietary_energy", "Dietary energy"),
    ("workouts", "Workouts"),
)


def _check_file(path: str, label: str) -> str:
    p = Path(path).expanduser()
    if not p.exists():
        print(f"✗ {label} not found: {p}")
        sys.exit(1)
    return str(p)


def _print_progress(lines: int):
    print(f"\r  … {lines:,} lines", end="", flush=True)


def print_summary(result):
    """Print per-series record counts for a finished scan."""
    stats = result.stats
    print(f"""
╔══════════════════════════════════════════╗
║            Scan Complete ✓               ║
╚══════════════════════════════════════════╝
  Lines processed: {stats.lines_processed:,}
  Records found:   {stats.records_found:,}
  Duration:        {stats.duration_seconds:.1f}s

  Series                     Records
  ─────────────────────────────────""")
    for attr_name, label in SERIES_LABELS:
        print(f"  {label:<24} {len(getattr(result, attr_name)):>9,}")
    print()


def save_json(result, output_path: str):
    """Write the scan in the camelCase layout the dashboard reads."""
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    print(f"  Saved results to {output_path}")


def cmd_scan(args) -> int:
    from vitals.parsers.apple_health import scan

    source = _check_file(args.export, "Apple Health export")

    print(f"""
╔══════════════════════════════════════════╗
║         Vitals — Scanning Export         ║
╚══════════════════════════════════════════╝
  Export: {source}
""")

    try:
        result = scan(source, progress=_print_progress if args.progress else None)
    except FileNotFoundError as e:
        print(f"\n✗ {e}")
        return 1
    except OSError as e:
        print(f"\n✗ Could not read {source}: {e}")
        return 1

    if args.progress:
        print()
    print_summary(result)

    if args.output:
        save_json(result, args.output)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Vitals — Extract health series and workouts from an Apple Health export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("export",      metavar="export.zip",
                        help="Apple Health export.zip or export.xml")
    parser.add_argument("--output",    metavar="results.json",
                        help="Write all extracted records to a JSON file")
    parser.add_argument("--progress",  action="store_true",
                        help="Show a running line count while scanning")
    parser.add_argument("--verbose",   action="store_true",
                        help="Log scanner details")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return cmd_scan(args)


if __name__ == "__main__":
    sys.exit(main())
