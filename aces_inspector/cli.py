#!/usr/bin/env python3
"""
Command line entry point.

Usage:
    aces-inspector -i catalog.json -v vcdb.json -p pcdb.json -q qdb.json -o assessments/ -t tmp/ [-l run.log]
    Reference files ending in .json are read as JSON exports; anything else is opened as SQLite.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from aces_inspector import __version__
from aces_inspector.config import Settings, settings
from aces_inspector.exceptions import InspectorError
from aces_inspector.loaders import load_catalog
from aces_inspector.reference.memory import InMemoryReference
from aces_inspector.reference.sqlite import load_reference_sqlite
from aces_inspector.report import (
    assessment_path,
    build_assessment,
    failure_reasons,
    problems_description,
    write_assessment,
)
from aces_inspector.schemas.analysis import DiagnosticCategory
from aces_inspector.services.runner import run_analysis
from aces_inspector.services.staging import FragmentStore, file_fingerprint
from aces_inspector.utils.notes import NoteTranslator, load_note_transforms

logger = logging.getLogger("aces_inspector")

USAGE = (
    "usage: aces-inspector -i <catalog file> -v <VCdb file> -p <PCdb file> -q <Qdb file> "
    "-o <assessment directory> -t <temp directory> [-l <logfile>]\n"
    "\n optional switches\n"
    "  --verbose    verbose console output\n"
    "  --delete     delete input catalog file upon successful analysis"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aces-inspector", description="Analyze an ACES catalog for fitment problems")
    parser.add_argument("-i", dest="input", default="", help="Catalog file (JSON)")
    parser.add_argument("-v", dest="vcdb", default="", help="VCdb file (.json or SQLite)")
    parser.add_argument("-p", dest="pcdb", default="", help="PCdb file (.json or SQLite)")
    parser.add_argument("-q", dest="qdb", default="", help="Qdb file (.json or SQLite)")
    parser.add_argument("-o", dest="output", default="", help="Directory for the assessment file")
    parser.add_argument("-t", dest="temp", default="", help="Temp directory for staged fragments")
    parser.add_argument("-l", "--log-file", dest="log_file", default="", help="Append the run log to this file")
    parser.add_argument("--verbose", action="store_true", help="Verbose console output")
    parser.add_argument("--delete", action="store_true", help="Delete the input file on successful analysis")
    parser.add_argument("--threads", type=int, default=None, help="Worker thread count")
    parser.add_argument("--processes", action="store_true", help="Run the fitment tree search in worker processes")
    parser.add_argument("--use-assets", action="store_true", help="Treat assets as part of the fitment root")
    parser.add_argument("--report-all", action="store_true", help="Report every app in a problem fitment group")
    parser.add_argument("--disparate", action="store_true", help="Accept disparate qualifier branches")
    parser.add_argument("--respect-qdb-type", action="store_true", help="Split Qdb qualifiers by qualifier type")
    parser.add_argument("--note-transforms", default="", help="JSON note -> Qdb qualifier id dictionary")
    return parser


def configure_logging(run_settings: Settings, verbose: bool, log_file: str) -> logging.Handler | None:
    if run_settings.debug:
        level = logging.DEBUG
    elif verbose or run_settings.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logger.setLevel(level)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s\t%(levelname)s\t%(message)s"))
        handler.setLevel(logging.INFO)
        logger.addHandler(handler)
        logger.setLevel(min(level, logging.INFO))
        return handler
    return None


def preflight(args: argparse.Namespace) -> str | None:
    """First fatal problem with the command line, or None."""
    if not Path(args.input).is_file():
        return f"input catalog file ({args.input}) does not exist"
    if not Path(args.output).is_dir():
        return f"output directory ({args.output}) does not exist"
    if not Path(args.temp).is_dir():
        return f"temp directory ({args.temp}) does not exist"
    for label, path in (("VCdb", args.vcdb), ("PCdb", args.pcdb), ("Qdb", args.qdb)):
        if not Path(path).is_file():
            return f"{label} file ({path}) does not exist"
    if args.note_transforms and not Path(args.note_transforms).is_file():
        return f"note transform file ({args.note_transforms}) does not exist"
    if args.log_file:
        try:
            with open(args.log_file, "a", encoding="utf-8"):
                pass
        except OSError as e:
            return f"Error writing to log file: {e}"
    return None


async def load_reference(vcdb: str, pcdb: str, qdb: str):
    if all(Path(p).suffix.lower() == ".json" for p in (vcdb, pcdb, qdb)):
        return InMemoryReference.from_json(vcdb, pcdb, qdb)
    return await load_reference_sqlite(vcdb, pcdb, qdb)


async def run(args: argparse.Namespace, run_settings: Settings) -> int:
    fingerprint = file_fingerprint(args.input)
    store = FragmentStore(args.temp, fingerprint)
    store.prepare()

    reference = await load_reference(args.vcdb, args.pcdb, args.qdb)
    transforms = load_note_transforms(args.note_transforms) if args.note_transforms else {}
    translator = NoteTranslator(transforms=transforms)

    app_set = load_catalog(args.input)
    try:
        results = await run_analysis(app_set, reference, run_settings, store, translator)

        reasons = failure_reasons(results)
        logger.info(f"{results.error_count - results.count(DiagnosticCategory.FITMENT_LOGIC)} errors")
        logger.info(problems_description(results))
        if reasons:
            logger.info(f"Result: Fail ({', '.join(reasons)})")
        else:
            logger.info("Result: Pass")

        # reads the staged fragments back
        assessment = build_assessment(results, app_set, reference, run_settings, translator)
        write_assessment(assessment_path(args.output, app_set), assessment)
    finally:
        if not run_settings.keep_staged_fragments:
            store.cleanup()

    if args.delete:
        try:
            Path(args.input).unlink()
            logger.info(f"Deleted input file {args.input}")
        except OSError as e:
            logger.warning(f"Failed to delete input file {args.input}: {e}")
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) == 1:
        print(f"Version: {__version__}")
        print(USAGE)
        return 1

    args = build_parser().parse_args(argv)
    overrides = {
        "use_assets_as_fitment": args.use_assets or settings.use_assets_as_fitment,
        "report_all_apps_in_problem_group": args.report_all or settings.report_all_apps_in_problem_group,
        "disparate_mode": args.disparate or settings.disparate_mode,
        "respect_qdb_type": args.respect_qdb_type or settings.respect_qdb_type,
        "verbose": args.verbose or settings.verbose,
        "fitment_processes": args.processes or settings.fitment_processes,
    }
    if args.threads is not None:
        overrides["thread_count"] = max(1, args.threads)
    run_settings = settings.model_copy(update=overrides)
    if not args.temp and run_settings.staging_dir:
        args.temp = str(run_settings.staging_dir)

    problem = preflight(args)
    if problem:
        print(problem)
        return 1

    file_handler = configure_logging(run_settings, args.verbose, args.log_file)
    logger.info(f"--- aces-inspector version {__version__} started ---")
    logger.info(f"Catalog file: {args.input}")

    try:
        return asyncio.run(run(args, run_settings))
    except InspectorError as e:
        logger.error(str(e))
        return 1
    finally:
        if file_handler is not None:
            logger.removeHandler(file_handler)
            file_handler.close()


if __name__ == "__main__":
    sys.exit(main())
