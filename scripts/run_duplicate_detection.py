#!/usr/bin/env python3
"""CLI script to find and resolve duplicate contacts in an exported contact file."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

import structlog
import typer

from contactscrub.config import get_settings
from contactscrub.duplicates.engine import run_duplicate_detection
from contactscrub.duplicates.merge import MergeStrategy
from contactscrub.pipelines.contact_files import load_contacts

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    contacts_file: Path = typer.Argument(..., help="Exported contacts (.json or .csv)"),
    strategy: MergeStrategy | None = typer.Option(
        None, "--strategy", help="Merge strategy (default from CS_DEFAULT_STRATEGY)"
    ),
    threshold: str | None = typer.Option(
        None, "--threshold", help="Minimum confidence class to group on: LOW, MEDIUM, HIGH, EXACT"
    ),
    workers: int | None = typer.Option(None, "--workers", help="Parallel pair-scoring workers"),
    output: Path | None = typer.Option(
        None, "--output", help="Write merge decisions as JSON to this path"
    ),
) -> None:
    """Detect duplicate groups and print the proposed merge outcome."""
    settings = get_settings()
    if workers is not None:
        settings.max_workers = workers

    records = load_contacts(contacts_file)
    report = run_duplicate_detection(
        records,
        strategy=strategy or settings.default_strategy,
        threshold=threshold,
        settings=settings,
    )

    for decision in report.decisions:
        logger.info(
            "merge_decision",
            records=list(decision.record_ids),
            status=decision.status.value,
            message=decision.message,
            conflicts=list(decision.conflicts),
        )

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump([asdict(d) for d in report.decisions], f, indent=2, default=str)
        logger.info("decisions_written", path=str(output), count=len(report.decisions))

    logger.info(
        "duplicate_detection_complete",
        total=report.total_records,
        invalid=len(report.invalid),
        pairs=report.pairs_compared,
        groups=len(report.groups),
        summary=report.summary(),
    )


if __name__ == "__main__":
    app()
