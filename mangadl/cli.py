"""Command-line interface for mangadl.

Responsibilities:
- Expose user-facing commands for manga info, chapter listing and downloads.
- Convert CLI arguments into `DownloaderConfig` and run the async pipeline.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
import re
from typing import Annotated

import aiohttp
import typer

from .api.mangadex import MangaDexApiError, MangaDexClient, manga_authors, manga_title
from .cli_rendering import (
    echo_chapter_list,
    echo_job_results,
    echo_manga_info,
    echo_selection_scope,
    echo_transfer_summary,
    exit_with_command_error,
)
from .config import ConfigLoader, DownloaderConfig
from .errors import PipelineStageError
from .io.downloader import download_file
from .models.datatypes import ArtifactFormat, Chapter, JobResult
from .naming.filenames import sanitize
from .naming.grouping import GroupNameCache, chapter_sort_key, group_chapters, sorted_volume_keys
from .parsing import normalize_optional_string
from .pipeline.orchestrator import DownloadManager
from .selection import format_chapter_selection, parse_chapter_selection, parse_volume_selection
from .telemetry.logger import RunLogger
from .telemetry.transfer_tracker import TransferTracker

app = typer.Typer(
    name="mangadl",
    no_args_is_help=True,
    help="Download MangaDex chapters and volumes as folders, zip archives or PDFs.",
)

_MANGA_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class DownloadMode(str, Enum):
    """Unit of work for the `download` command."""

    CHAPTER = "chapter"
    VOLUME = "volume"


def _load_config(config_path: Path | None) -> DownloaderConfig:
    """Load YAML config when requested, else environment overrides, as stage errors."""

    try:
        if config_path is None:
            return ConfigLoader.from_env()
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Fix config keys/values (or `MANGADL_*` variables) and rerun.",
        ) from exc
    except OSError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify file permissions.",
        ) from exc


def _require_manga_id(manga_id: str) -> str:
    normalized = manga_id.strip()
    if not _MANGA_ID_PATTERN.match(normalized):
        raise PipelineStageError(
            stage="input",
            detail=f"Invalid manga id `{manga_id}`.",
            hint="Use the UUID from the manga URL, e.g. `mangadex.org/title/<uuid>`.",
        )
    return normalized


def _require_language(language: str) -> str:
    normalized = normalize_optional_string(language)
    if normalized is None:
        raise PipelineStageError(
            stage="input",
            detail="Language code must not be empty.",
            hint="Run `mangadl info <manga-id>` to list available languages.",
        )
    return normalized


def _api_stage_error(exc: MangaDexApiError) -> PipelineStageError:
    hint = {
        "not_found": "Check the manga id; it must exist on MangaDex.",
        "timeout": "Retry later or raise `request_timeout_seconds`.",
        "transport": "Check network connectivity and rerun.",
    }.get(exc.failure_kind, "Retry later; the MangaDex API may be unavailable.")
    return PipelineStageError(stage="api", detail=str(exc), hint=hint)


async def _sorted_chapters(client: MangaDexClient, manga_id: str, language: str) -> list[Chapter]:
    chapters = await client.list_chapters(manga_id, language)
    if not chapters:
        raise PipelineStageError(
            stage="chapters",
            detail=f"No chapters found for language `{language}`.",
            hint="Run `mangadl info <manga-id>` to list available languages.",
        )
    return sorted(chapters, key=chapter_sort_key)


async def _run_info(config: DownloaderConfig, manga_id: str) -> tuple[str, str, list[str]]:
    async with aiohttp.ClientSession(headers=config.headers) as session:
        client = MangaDexClient(session, config)
        manga = await client.get_manga(manga_id)
        languages = await client.list_languages(manga_id)
    return manga_title(manga.get("attributes")), manga_authors(manga), languages


async def _run_list_chapters(
    config: DownloaderConfig, manga_id: str, language: str, run_logger: RunLogger
) -> tuple[list[Chapter], list[str]]:
    async with aiohttp.ClientSession(headers=config.headers) as session:
        client = MangaDexClient(session, config)
        chapters = await _sorted_chapters(client, manga_id, language)
        cache = GroupNameCache(run_logger)
        group_names = [await cache.resolve(chapter, client.get_group_name) for chapter in chapters]
    return chapters, group_names


async def _run_download(
    *,
    config: DownloaderConfig,
    manga_id: str,
    language: str,
    mode: DownloadMode,
    artifact_format: ArtifactFormat,
    chapter_selection: str | None,
    volume_selection: str | None,
    pdf_per_chapter: bool,
    out: Path,
    run_logger: RunLogger,
) -> tuple[list[JobResult], TransferTracker]:
    async with aiohttp.ClientSession(headers=config.headers) as session:
        client = MangaDexClient(session, config)
        manga = await client.get_manga(manga_id)
        title = sanitize(manga_title(manga.get("attributes")))
        chapters = await _sorted_chapters(client, manga_id, language)
        output_dir = out / title
        manager = DownloadManager(
            config=config,
            session=session,
            content_source=client,
            run_logger=run_logger,
            fetcher=download_file,
        )

        try:
            if mode is DownloadMode.CHAPTER:
                positions = parse_chapter_selection(chapter_selection, len(chapters))
                selected = [chapters[position - 1] for position in positions]
                scope = f"chapters {format_chapter_selection(positions)} of {len(chapters)}"
            else:
                index = group_chapters(chapters)
                volumes = parse_volume_selection(volume_selection, sorted_volume_keys(index))
                scope = "volumes " + ", ".join(volume.label for volume in volumes)
        except ValueError as exc:
            raise PipelineStageError(
                stage="selection",
                detail=str(exc),
                hint="Run `mangadl list-chapters <manga-id> --language <code>` to inspect choices.",
            ) from exc

        echo_selection_scope(title, scope)
        run_logger.log_stage_start(
            "download", manga=title, mode=mode.value, format=artifact_format.value
        )
        try:
            if mode is DownloadMode.CHAPTER:
                results = await manager.download_chapters(
                    manga_name=title,
                    chapters=selected,
                    language=language,
                    output_dir=output_dir,
                    artifact_format=artifact_format,
                )
            else:
                results = await manager.download_volume_selection(
                    manga_name=title,
                    index=index,
                    volumes=volumes,
                    language=language,
                    output_dir=output_dir,
                    artifact_format=artifact_format,
                    pdf_per_chapter=pdf_per_chapter,
                )
        except Exception as exc:
            run_logger.log_stage_failure("download", type(exc).__name__)
            raise
        run_logger.log_stage_complete(
            "download", jobs=len(results), failed=sum(1 for result in results if not result.ok)
        )
    return results, manager.tracker


@app.command("info")
def info_command(
    manga_id: Annotated[str, typer.Argument(help="MangaDex manga UUID.")],
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Optional YAML config file."),
    ] = None,
) -> None:
    """Show title, authors and available languages of a manga."""

    try:
        normalized_id = _require_manga_id(manga_id)
        config = _load_config(config_file)
        title, authors, languages = asyncio.run(_run_info(config, normalized_id))
    except MangaDexApiError as exc:
        exit_with_command_error("info", _api_stage_error(exc))
    except Exception as exc:
        exit_with_command_error("info", exc)

    echo_manga_info(title, authors, languages)


@app.command("list-chapters")
def list_chapters_command(
    manga_id: Annotated[str, typer.Argument(help="MangaDex manga UUID.")],
    language: Annotated[
        str, typer.Option("--language", "-l", help="Translated language code, e.g. `en`.")
    ],
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Optional YAML config file."),
    ] = None,
) -> None:
    """List chapters of a manga in one language, numbered for `--chapters` selection."""

    try:
        normalized_id = _require_manga_id(manga_id)
        normalized_language = _require_language(language)
        config = _load_config(config_file)
        chapters, group_names = asyncio.run(
            _run_list_chapters(config, normalized_id, normalized_language, RunLogger())
        )
    except MangaDexApiError as exc:
        exit_with_command_error("list-chapters", _api_stage_error(exc))
    except Exception as exc:
        exit_with_command_error("list-chapters", exc)

    echo_chapter_list(chapters, group_names)


@app.command("download")
def download_command(
    manga_id: Annotated[str, typer.Argument(help="MangaDex manga UUID.")],
    language: Annotated[
        str, typer.Option("--language", "-l", help="Translated language code, e.g. `en`.")
    ],
    mode: Annotated[
        DownloadMode,
        typer.Option("--mode", help="Download individual chapters or whole volumes."),
    ] = DownloadMode.CHAPTER,
    artifact_format: Annotated[
        ArtifactFormat,
        typer.Option("--format", help="Output as loose image folders, zip or PDF."),
    ] = ArtifactFormat.PDF,
    chapters: Annotated[
        str | None,
        typer.Option(
            "--chapters",
            help="Chapter positions from `list-chapters`, e.g. `1,3-5` (chapter mode).",
        ),
    ] = None,
    volumes: Annotated[
        str | None,
        typer.Option(
            "--volumes",
            help="Volume labels, e.g. `1,2,none`; `none` selects unvolumed chapters.",
        ),
    ] = None,
    pdf_per_chapter: Annotated[
        bool,
        typer.Option(
            "--pdf-per-chapter",
            help="In volume mode with PDF format, write one PDF per chapter.",
        ),
    ] = False,
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Output directory (overrides config file value)."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Optional YAML config file."),
    ] = None,
) -> None:
    """Download chapters or volumes of a manga."""

    try:
        normalized_id = _require_manga_id(manga_id)
        normalized_language = _require_language(language)
        if pdf_per_chapter and (
            mode is not DownloadMode.VOLUME or artifact_format is not ArtifactFormat.PDF
        ):
            raise PipelineStageError(
                stage="input",
                detail="`--pdf-per-chapter` requires `--mode volume --format pdf`.",
            )
        if chapters is not None and mode is not DownloadMode.CHAPTER:
            raise PipelineStageError(
                stage="input",
                detail="`--chapters` applies to chapter mode only.",
                hint="Use `--volumes` with `--mode volume`.",
            )
        if volumes is not None and mode is not DownloadMode.VOLUME:
            raise PipelineStageError(
                stage="input",
                detail="`--volumes` applies to volume mode only.",
                hint="Add `--mode volume`.",
            )
        config = _load_config(config_file)
        results, tracker = asyncio.run(
            _run_download(
                config=config,
                manga_id=normalized_id,
                language=normalized_language,
                mode=mode,
                artifact_format=artifact_format,
                chapter_selection=chapters,
                volume_selection=volumes,
                pdf_per_chapter=pdf_per_chapter,
                out=out if out is not None else config.output_dir,
                run_logger=RunLogger(),
            )
        )
    except MangaDexApiError as exc:
        exit_with_command_error("download", _api_stage_error(exc))
    except Exception as exc:
        exit_with_command_error("download", exc)

    echo_job_results(results)
    echo_transfer_summary(tracker)
    if any(not result.ok for result in results):
        raise typer.Exit(code=1)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
