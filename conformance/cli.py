#!/usr/bin/env python3
"""
Command line entry point for listing, validating, running and fetching fixtures.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from conformance.runner import RunnerConfig, SpecRunner
from conformance.utils.fetch import DEFAULT_REF, download_spec_files
from conformance.utils.loading import expand_paths, iter_test_cases, list_fixture_files, load_spec_file
from conformance.utils.validation import validate_test_file

logger = logging.getLogger(__name__)


def _files(paths):
    return expand_paths(paths) if paths else list_fixture_files()


def cmd_list(args):
    for test_file, test_case in iter_test_cases(args.paths or None):
        print(f"{Path(test_file.path).name} :: {test_case.description}")
    return 0


def cmd_validate(args):
    failed = False
    for path in _files(args.paths):
        try:
            errors = validate_test_file(load_spec_file(path))
        except ValueError as e:
            errors = [str(e)]
        if errors:
            failed = True
            logger.error(f"✗ {path}")
            for e in errors:
                print(f"{path}: {e}")
        else:
            logger.info(f"✓ {path}")
    return 1 if failed else 0


def cmd_run(args):
    config = RunnerConfig(mongodb_uri=args.uri, fail_fast=args.fail_fast)
    logger.info(f"Running fixtures against {config.mongodb_uri}")
    runner = SpecRunner(config=config)
    try:
        report = runner.run_paths(args.paths or None)
    finally:
        runner.close()

    for result in report.results:
        print(f"{result.status.upper():8} {result.name}")
        for message in result.messages:
            print(f"         {message}")
    print(report.summary())
    return 0 if report.ok else 1


def cmd_fetch(args):
    written = download_spec_files(args.paths, args.dest, ref=args.ref)
    for path in written:
        print(path)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="Retryable reads fixture harness")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List the scenarios in fixture files")
    p.add_argument("paths", nargs="*", help="Fixture files or directories (default: bundled)")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("validate", help="Check fixture files against the schema")
    p.add_argument("paths", nargs="*", help="Fixture files or directories (default: bundled)")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("run", help="Run fixture scenarios against a deployment")
    p.add_argument("paths", nargs="*", help="Fixture files or directories (default: bundled)")
    p.add_argument("--uri", default=os.getenv("MONGODB_URI"), help="MongoDB connection string")
    p.add_argument("--fail-fast", action="store_true", help="Stop at the first failure")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("fetch", help="Download fixtures from the specifications repository")
    p.add_argument("paths", nargs="+", help="Paths inside the specifications repository")
    p.add_argument("--dest", required=True, help="Directory to write the fixtures to")
    p.add_argument("--ref", default=DEFAULT_REF, help=f"Branch or tag (default: {DEFAULT_REF})")
    p.set_defaults(func=cmd_fetch)

    return parser


def main(argv=None):
    """Main function."""
    args = build_parser().parse_args(argv)

    debug = args.verbose or os.getenv("DEBUG", "0") == "1"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        return args.func(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
