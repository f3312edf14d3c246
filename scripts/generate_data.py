"""
Data generation script for storebench.

Implements deterministic pseudo-random people rows in the exact input format
the loader expects (header line, fixed column order, month/day/year dates) and
optionally loads the file into one engine through the storebench bulk loader.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import date, timedelta
from pathlib import Path

import typer

from storebench.config import get_settings
from storebench.engines import build_engine
from storebench.loader import load, read_source
from storebench.reporter import print_load_report
from storebench.schema import PEOPLE_SCHEMA

app = typer.Typer(help="Generate a synthetic people CSV and optionally load it into one engine.")

HEADER = ["user_id", "username", "sex", "email", "phone", "dob", "job_title"]

_FIRST_NAMES = ["ana", "bruno", "carla", "diego", "elena", "felipe", "gita", "hugo", "iris"]
_LAST_NAMES = ["silva", "jones", "kowalski", "nguyen", "okafor", "schmidt", "tanaka"]
_DOMAINS = ["example.com", "example.org", "mail.test"]
_JOB_TITLES = [
    "Accountant",
    "Data scientist",
    "Engineer, civil",
    "Engineer, software",
    "Nurse",
    "Surveyor, land",
    "Solicitor",
]
_DOB_START = date(1940, 1, 1)
_DOB_SPAN_DAYS = (date(2005, 12, 31) - _DOB_START).days


def _person(rng: random.Random) -> list[str]:
    first = rng.choice(_FIRST_NAMES)
    last = rng.choice(_LAST_NAMES)
    suffix = rng.randint(1, 9_999)
    dob = _DOB_START + timedelta(days=rng.randint(0, _DOB_SPAN_DAYS))
    phone = ""
    if rng.random() >= 0.1:
        phone = f"+1-{rng.randint(200, 999)}-555-{rng.randint(0, 9999):04d}"
    job_title = "" if rng.random() < 0.05 else rng.choice(_JOB_TITLES)
    return [
        f"{rng.getrandbits(60):015x}",
        f"{first}{last}{suffix}",
        rng.choice(["Male", "Female"]),
        f"{first}.{last}{suffix}@{rng.choice(_DOMAINS)}",
        phone,
        dob.strftime("%m/%d/%Y"),
        job_title,
    ]


def _generate_rows_csv(csv_path: Path, rows: int, batch_size: int, seed: int) -> None:
    rng = random.Random(seed)

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)

        buffer: list[list[str]] = []
        for _ in range(rows):
            buffer.append(_person(rng))
            if len(buffer) >= batch_size:
                writer.writerows(buffer)
                buffer.clear()
        if buffer:
            writer.writerows(buffer)


@app.command()
def main(
    rows: int = typer.Option(
        100_000,
        "--rows",
        "-r",
        help="Number of rows to generate.",
    ),
    batch_size: int = typer.Option(
        10_000,
        "--batch-size",
        "-b",
        help="Batch size for CSV buffering during generation.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    engine: str = typer.Option(
        "postgres",
        "--engine",
        "-e",
        help="Engine to load the generated file into.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSV; skip loading.",
    ),
) -> None:
    """
    Generate synthetic people and optionally load them (table recreated first).
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="storebench_csv_"))
        csv_path = tmpdir / "people.csv"

    typer.echo(f"Generating {rows:,} rows -> {csv_path} (batch={batch_size}, seed={seed})")
    _generate_rows_csv(csv_path, rows=rows, batch_size=batch_size, seed=seed)
    gen_duration = time.perf_counter() - start
    typer.echo(
        f"CSV generation completed in {gen_duration:.2f}s ({rows / gen_duration:,.0f} rows/s)"
    )

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    settings = get_settings()
    adapter = build_engine(engine, settings)
    typer.echo(f"Loading CSV into {engine}:{settings.default_table}...")
    try:
        report = load(
            read_source(csv_path),
            PEOPLE_SCHEMA,
            adapter,
            table=settings.default_table,
            create=True,
        )
    finally:
        adapter.close()
    print_load_report(report)


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
