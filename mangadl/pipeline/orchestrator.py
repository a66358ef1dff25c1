"""Download orchestration for chapter and volume jobs.

Responsibilities:
- Fan chapter and volume jobs out in bounded waves.
- Stage packed formats in a temp workspace that never outlives its job.
- Turn every job into a `JobResult` so one failure never stops its siblings.

Key types:
- `DownloadManager`: orchestration facade used by the CLI.
- `ContentSource`: remote collaborator shape consumed by the manager.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import aiohttp

from ..config import DownloaderConfig
from ..errors import PackagingError
from ..io.downloader import FileFetcher, download_file
from ..io.workspace import Workspace, dir_has_any_file
from ..models.datatypes import (
    ArtifactFormat,
    Chapter,
    DownloadJob,
    JobResult,
    PageSet,
    VolumeKey,
)
from ..naming.filenames import chapter_file_name, sanitize, volume_file_name
from ..naming.grouping import GroupNameCache, VolumeGroupIndex
from ..packaging.packer import ArtifactPacker
from ..telemetry.logger import RunLogger
from ..telemetry.transfer_tracker import TransferTracker
from .batching import run_in_batches
from .chapter import ChapterDownloader
from .retry import RetryOutcome


class ContentSource(Protocol):
    """Remote collaborator providing page locations and group names."""

    async def get_page_locations(self, chapter_id: str) -> PageSet: ...

    async def get_group_name(self, group_id: str) -> str: ...


def chapter_folder_name(chapter: Chapter) -> str:
    """Return the per-chapter subfolder used inside volume output."""

    return f"Chapter_{sanitize(chapter.number_label)}"


class DownloadManager:
    """Coordinate chapter/volume downloads, packing and workspace cleanup."""

    def __init__(
        self,
        *,
        config: DownloaderConfig,
        session: aiohttp.ClientSession,
        content_source: ContentSource,
        group_cache: GroupNameCache | None = None,
        chapter_downloader: ChapterDownloader | None = None,
        packer: ArtifactPacker | None = None,
        run_logger: RunLogger | None = None,
        tracker: TransferTracker | None = None,
        fetcher: FileFetcher = download_file,
    ) -> None:
        """Wire collaborators; omitted ones are built from `config`."""

        self._config = config
        self._content_source = content_source
        self._run_logger = run_logger
        self._group_cache = group_cache if group_cache is not None else GroupNameCache(run_logger)
        if chapter_downloader is None:
            chapter_downloader = ChapterDownloader(
                session=session,
                page_source=content_source,
                config=config,
                fetcher=fetcher,
                run_logger=run_logger,
                tracker=tracker,
            )
        self._chapter_downloader = chapter_downloader
        self._packer = packer or ArtifactPacker(
            compression_level=config.zip_compression_level,
            run_logger=run_logger,
        )

    @property
    def tracker(self) -> TransferTracker:
        return self._chapter_downloader.tracker

    @property
    def group_cache(self) -> GroupNameCache:
        return self._group_cache

    async def download_chapter(
        self,
        *,
        manga_name: str,
        chapter: Chapter,
        language: str,
        output_dir: Path,
        artifact_format: ArtifactFormat,
    ) -> JobResult:
        """Download one chapter into loose files or a packed artifact."""

        group_name = await self._group_cache.resolve(
            chapter, self._content_source.get_group_name
        )
        naming = {
            "manga_name": manga_name,
            "chapter_number": chapter.number_label,
            "volume": chapter.volume,
            "language": language,
            "group": group_name,
        }
        label = chapter_file_name(**naming)

        if artifact_format is ArtifactFormat.LOOSE:
            chapter_dir = output_dir / label
            chapter_dir.mkdir(parents=True, exist_ok=True)
            outcome = await self._chapter_downloader.download(chapter, chapter_dir)
            if not outcome.succeeded:
                return self._download_failure(label, outcome)
            return JobResult.success(label, chapter_dir)

        if chapter.is_external:
            self._log("INFO", "chapter", "skipped_external", chapter=chapter.number_label)
            return JobResult.success(label, detail="external chapter, no artifact written")

        artifact_name = chapter_file_name(**naming, artifact_format=artifact_format.extension)
        workspace = Workspace(output_dir / f"temp-chap-{chapter.id}", self._run_logger)
        async with workspace as staging:
            outcome = await self._chapter_downloader.download(chapter, staging)
            if not outcome.succeeded:
                return self._download_failure(label, outcome)
            return await self._pack(label, artifact_format, staging, output_dir, artifact_name)

    async def download_chapters(
        self,
        *,
        manga_name: str,
        chapters: Sequence[Chapter],
        language: str,
        output_dir: Path,
        artifact_format: ArtifactFormat,
    ) -> list[JobResult]:
        """Download chapters in waves of `chapters_per_batch`."""

        async def worker(chapter: Chapter) -> JobResult:
            return await self.download_chapter(
                manga_name=manga_name,
                chapter=chapter,
                language=language,
                output_dir=output_dir,
                artifact_format=artifact_format,
            )

        settled = await run_in_batches(chapters, self._config.chapters_per_batch, worker)
        return [
            self._settled_result(result, f"chapter {chapter.number_label}")
            for chapter, result in zip(chapters, settled)
        ]

    async def download_volume(self, job: DownloadJob) -> JobResult:
        """Download one (volume, group) job and pack it as requested."""

        label = volume_file_name(
            manga_name=job.manga_name,
            volume=job.volume.label,
            language=job.language,
            group=job.group_name,
        )
        self._log("INFO", "volume", "start", volume=job.volume.label, chapters=len(job.chapters))

        if job.artifact_format is ArtifactFormat.LOOSE:
            volume_dir = job.output_dir / label
            volume_dir.mkdir(parents=True, exist_ok=True)
            failed = await self._download_into_folders(job.chapters, volume_dir)
            if failed == len(job.chapters):
                return JobResult.failure(label, "download", "Every chapter of the volume failed.")
            return JobResult.success(label, volume_dir)

        workspace_name = f"temp-vol-{sanitize(job.volume.label)}-{sanitize(job.group_name)}"
        async with Workspace(job.output_dir / workspace_name, self._run_logger) as staging:
            await self._download_into_folders(job.chapters, staging)
            if not dir_has_any_file(staging):
                return JobResult.failure(
                    label, "download", "No page of the volume could be downloaded."
                )

            if job.artifact_format is ArtifactFormat.PDF and job.pdf_per_chapter:
                return await self._pack_per_chapter(label, job, staging)

            artifact_name = volume_file_name(
                manga_name=job.manga_name,
                volume=job.volume.label,
                language=job.language,
                group=job.group_name,
                artifact_format=job.artifact_format.extension,
            )
            return await self._pack(
                label, job.artifact_format, staging, job.output_dir, artifact_name
            )

    async def download_volumes(self, jobs: Sequence[DownloadJob]) -> list[JobResult]:
        """Download volume jobs in waves of `volumes_per_batch`."""

        settled = await run_in_batches(jobs, self._config.volumes_per_batch, self.download_volume)
        return [
            self._settled_result(result, f"volume {job.volume.label}")
            for job, result in zip(jobs, settled)
        ]

    async def build_volume_jobs(
        self,
        *,
        manga_name: str,
        index: VolumeGroupIndex,
        volumes: Sequence[VolumeKey],
        language: str,
        output_dir: Path,
        artifact_format: ArtifactFormat,
        pdf_per_chapter: bool = False,
    ) -> tuple[list[DownloadJob], list[Chapter]]:
        """Build one job per (volume, group) bucket of the selected volumes.

        Chapters of the "no volume" bucket are returned flat so the caller can
        download them in chapter mode.
        """

        jobs: list[DownloadJob] = []
        unvolumed: list[Chapter] = []
        for volume in volumes:
            by_group = index.get(volume)
            if not by_group:
                continue
            if volume.is_none:
                for chapters in by_group.values():
                    unvolumed.extend(chapters)
                continue
            for chapters in by_group.values():
                if not chapters:
                    continue
                group_name = await self._group_cache.resolve(
                    chapters[0], self._content_source.get_group_name
                )
                jobs.append(
                    DownloadJob(
                        manga_name=manga_name,
                        volume=volume,
                        group_name=group_name,
                        chapters=tuple(chapters),
                        language=language,
                        output_dir=output_dir,
                        artifact_format=artifact_format,
                        pdf_per_chapter=pdf_per_chapter,
                    )
                )
        return jobs, unvolumed

    async def download_volume_selection(
        self,
        *,
        manga_name: str,
        index: VolumeGroupIndex,
        volumes: Sequence[VolumeKey],
        language: str,
        output_dir: Path,
        artifact_format: ArtifactFormat,
        pdf_per_chapter: bool = False,
    ) -> list[JobResult]:
        """Run volume jobs for the selection, then the "no volume" chapters one by one."""

        jobs, unvolumed = await self.build_volume_jobs(
            manga_name=manga_name,
            index=index,
            volumes=volumes,
            language=language,
            output_dir=output_dir,
            artifact_format=artifact_format,
            pdf_per_chapter=pdf_per_chapter,
        )
        results = await self.download_volumes(jobs) if jobs else []
        if unvolumed:
            results.extend(
                await self.download_chapters(
                    manga_name=manga_name,
                    chapters=unvolumed,
                    language=language,
                    output_dir=output_dir,
                    artifact_format=artifact_format,
                )
            )
        return results

    async def _download_into_folders(self, chapters: Sequence[Chapter], root: Path) -> int:
        """Download each chapter into its own subfolder of `root`; return the failure count."""

        async def worker(chapter: Chapter) -> RetryOutcome:
            chapter_dir = root / chapter_folder_name(chapter)
            chapter_dir.mkdir(parents=True, exist_ok=True)
            return await self._chapter_downloader.download(chapter, chapter_dir)

        settled = await run_in_batches(chapters, self._config.chapters_per_batch, worker)
        failed = 0
        for chapter, result in zip(chapters, settled):
            if isinstance(result, RetryOutcome) and result.succeeded:
                continue
            failed += 1
            if isinstance(result, BaseException):
                self._log(
                    "ERROR",
                    "chapter",
                    "unexpected_failure",
                    chapter=chapter.number_label,
                    error_type=type(result).__name__,
                )
        return failed

    async def _pack_per_chapter(self, label: str, job: DownloadJob, staging: Path) -> JobResult:
        """Write one PDF per non-empty chapter folder of a volume workspace."""

        artifacts: list[Path] = []
        for chapter in job.chapters:
            chapter_dir = staging / chapter_folder_name(chapter)
            if not dir_has_any_file(chapter_dir):
                continue
            name = chapter_file_name(
                manga_name=job.manga_name,
                chapter_number=chapter.number_label,
                volume=job.volume.value,
                language=job.language,
                group=job.group_name,
                artifact_format=ArtifactFormat.PDF.extension,
            )
            result = await self._pack(
                label, ArtifactFormat.PDF, chapter_dir, job.output_dir, name
            )
            if not result.ok:
                return result
            artifacts.extend(result.artifact_paths)
        return JobResult.success(label, *artifacts)

    async def _pack(
        self,
        label: str,
        artifact_format: ArtifactFormat,
        source_dir: Path,
        output_dir: Path,
        artifact_name: str,
    ) -> JobResult:
        """Pack on a worker thread; PDF embedding and deflate never run on the loop."""

        try:
            artifact_path = await asyncio.to_thread(
                self._packer.pack, artifact_format, source_dir, output_dir, artifact_name
            )
        except PackagingError as exc:
            self._log("ERROR", "package", "failure", artifact=artifact_name, detail=exc.detail)
            return JobResult.failure(label, "packaging", exc.detail)
        return JobResult.success(label, artifact_path)

    def _download_failure(self, label: str, outcome: RetryOutcome) -> JobResult:
        detail = (
            f"Gave up after {outcome.attempts} attempt(s): {outcome.error}"
            if outcome.error is not None
            else f"Gave up after {outcome.attempts} attempt(s)."
        )
        return JobResult.failure(label, "download", detail)

    def _settled_result(self, result: JobResult | BaseException, label: str) -> JobResult:
        if isinstance(result, JobResult):
            return result
        self._log("ERROR", "job", "unexpected_failure", job=label, error_type=type(result).__name__)
        return JobResult.failure(label, "unexpected", str(result) or type(result).__name__)

    def _log(self, level: str, stage: str, event: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_event(level, stage, event, **context)
