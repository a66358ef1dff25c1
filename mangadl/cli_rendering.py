"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
manga info, chapter listing rows, job results and transfer summaries.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import PipelineStageError
from .models.datatypes import Chapter, JobResult
from .telemetry.transfer_tracker import TransferTracker


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_manga_info(title: str, authors: str, languages: Sequence[str]) -> None:
    """Print title, authors and available translation languages."""

    typer.echo(f"Title: {title}")
    typer.echo(f"Authors: {authors}")
    typer.echo(f"Languages: {', '.join(languages) if languages else '(none)'}")


def echo_chapter_list(chapters: Sequence[Chapter], group_names: Sequence[str]) -> None:
    """Print numbered chapter rows; `group_names` is aligned with `chapters`."""

    for position, (chapter, group_name) in enumerate(zip(chapters, group_names), start=1):
        typer.echo(
            f"{position}. Cap {chapter.number_label} - "
            f"Vol {chapter.volume_key.label} - [{group_name}]"
        )


def echo_selection_scope(title: str, scope: str) -> None:
    """Print which part of the manga a download run covers."""

    typer.echo(f"Downloading {title}: {scope}")


def echo_job_results(results: Sequence[JobResult]) -> None:
    """Print one line per job outcome followed by a success count."""

    for result in results:
        if result.ok:
            artifacts = ", ".join(str(path) for path in result.artifact_paths)
            line = f"OK   {result.label}"
            if artifacts:
                line += f" -> {artifacts}"
            if result.detail:
                line += f" ({result.detail})"
            typer.echo(line)
        else:
            typer.secho(
                f"FAIL {result.label} ({result.error_kind}): {result.detail}",
                fg=typer.colors.RED,
                err=True,
            )
    succeeded = sum(1 for result in results if result.ok)
    typer.echo(f"Jobs: {succeeded}/{len(results)} succeeded")


def echo_transfer_summary(tracker: TransferTracker) -> None:
    """Print run-level transfer counters."""

    summary = tracker.summary()
    typer.echo(
        f"Pages: {summary['pages_downloaded']} downloaded, "
        f"{summary['pages_skipped']} already present "
        f"({summary['bytes_downloaded']} bytes)"
    )
    typer.echo(
        f"Chapters: {summary['chapters_completed']} completed, "
        f"{summary['chapters_failed']} failed, {summary['retries']} retries"
    )
