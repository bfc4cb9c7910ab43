#!/usr/bin/env python3
"""
run.py – CLI entry-point for the JUnit → Azure DevOps automation sync.

Usage:
    python run.py
    python run.py --junit-path results/report.xml
    python run.py --dry-run -v
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from ado_client import ADOClient, ResolutionError
from config import SecretMaskingFilter, Settings
from junit_reader import ReportError, collect_testcases, extract_records, load_report
from models import RunSummary
from reconciler import Reconciler, count_known

console = Console()
logger = logging.getLogger("junit-ado-sync")

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


def _install_secret_masking(*secrets: str) -> None:
    """Mask *secrets* in everything the root handlers emit."""
    masking = SecretMaskingFilter(*secrets)
    for handler in logging.getLogger().handlers:
        handler.addFilter(masking)


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_summary(summary: RunSummary) -> None:
    lines = [
        f"[bold]Total test cases processed:[/]  {summary.total}",
        f"[green bold]Successfully updated:[/]  {summary.success}",
    ]
    if summary.failed:
        lines.append(f"[red bold]Failed updates:[/]  {summary.failed}  →  {summary.failed_ids}")
    if summary.skipped:
        lines.append(f"[dim]Skipped:[/]  {summary.skipped}")
    console.print()
    console.print(
        Panel("\n".join(lines), title="Summary Report", border_style="green")
    )


# ── Core orchestration ─────────────────────────────────────────────────

def run(
    settings: Settings,
    junit_path: str | None = None,
    dry_run: bool = False,
    ado: ADOClient | None = None,
) -> RunSummary:
    """End-to-end pipeline: Parse → Extract → Resolve → Update.

    Raises ReportError when the report cannot be read or parsed.
    """
    summary = RunSummary()
    path = junit_path or settings.junit_path

    # ── Phase 1: Parse report ───────────────────────────────────────
    console.rule("[bold blue]Phase 1 · Parse JUnit Report")
    logger.info("Parsing JUnit XML file: %s", path)
    testcases = collect_testcases(load_report(path))

    if not testcases:
        logger.warning("No test cases found in JUnit file.")
        summary.skipped = 1
        _show_summary(summary)
        return summary

    records = extract_records(testcases)
    if not records:
        logger.warning("No TC ID found in any test case. Skipping Azure DevOps update.")
        summary.skipped = len(testcases)
        _show_summary(summary)
        return summary

    summary.total = len(records)
    logger.info("TC IDs extracted: %s", [r.identifier for r in records])

    # ── Phase 2: Resolve suite and test points ──────────────────────
    console.rule("[bold blue]Phase 2 · Resolve Test Suite")
    ado = ado or ADOClient(settings)
    try:
        suite_id = ado.get_suite_id_by_name(settings.suite_name)
        logger.info(
            "Fetching valid test points from plan %s, suite %s",
            settings.plan_id,
            suite_id,
        )
        point_map = ado.get_test_point_map(suite_id)
    except ResolutionError as exc:
        logger.error("%s", exc)
        summary.skipped = len(records)
        _show_summary(summary)
        return summary

    known = count_known(records, point_map)
    if not known:
        logger.warning(
            "No valid test case IDs matched in Azure DevOps suite. "
            "Proceeding to update test case metadata only."
        )
    else:
        logger.info("%d of %d TC IDs have test points in suite %s.", known, len(records), suite_id)

    if dry_run:
        console.print("\n[yellow bold]DRY RUN[/] – no changes written to ADO.")
        summary.skipped = len(records)
        _show_summary(summary)
        return summary

    # ── Phase 3: Update work items ──────────────────────────────────
    console.rule("[bold blue]Phase 3 · Update Work Items")
    Reconciler(ado).reconcile(records, summary)
    logger.info("ADO automation metadata sync completed!")

    _show_summary(summary)
    return summary


# ── CLI ─────────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="junit-ado-sync",
        description="Link JUnit test results to Azure DevOps Test Case automation fields.",
    )
    parser.add_argument(
        "--junit-path",
        default=None,
        help="JUnit XML report to read (overrides JUNIT_PATH).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Parse and resolve, but do NOT update work items.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)
    load_dotenv()

    settings = Settings.from_env()
    _install_secret_masking(settings.pat)

    try:
        run(settings, junit_path=args.junit_path, dry_run=args.dry_run)
    except ReportError as exc:
        console.print(f"\n[red bold]Error:[/] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        sys.exit(130)
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {exc}")
        logger.debug("Traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
