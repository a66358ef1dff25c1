"""CLI integration tests with the MangaDex client and page fetcher stubbed."""

from __future__ import annotations

from pathlib import Path
import zipfile

import pytest
from typer.testing import CliRunner

from mangadl.api.mangadex import MangaDexApiError
from mangadl.cli import app
from mangadl.models.datatypes import Chapter, PageSet
from tests.support import FakeFetcher, make_chapter

_MANGA_ID = "0b1e4c1a-7d4e-4a3b-9c1f-1234567890ab"


class _StubClient:
    """Replacement for `MangaDexClient` serving canned manga data."""

    chapters: list[Chapter] = []
    missing = False

    def __init__(self, session: object, config: object) -> None:
        _ = session
        _ = config

    async def get_manga(self, manga_id: str) -> dict[str, object]:
        if self.missing:
            raise MangaDexApiError(
                f"MangaDex request failed (HTTP 404): /manga/{manga_id}",
                failure_kind="not_found",
                status_code=404,
            )
        return {
            "id": manga_id,
            "attributes": {"title": {"en": "Stub: Manga"}},
            "relationships": [{"type": "author", "attributes": {"name": "A. Author"}}],
        }

    async def list_languages(self, manga_id: str) -> list[str]:
        _ = manga_id
        return ["en", "pt-br"]

    async def list_chapters(self, manga_id: str, language: str | None = None) -> list[Chapter]:
        _ = manga_id
        return [chapter for chapter in self.chapters if chapter.language == language]

    async def get_page_locations(self, chapter_id: str) -> PageSet:
        return PageSet(
            base_url="https://uploads.test",
            hash=chapter_id,
            files=(f"{chapter_id}-1.png", f"{chapter_id}-2.png"),
        )

    async def get_group_name(self, group_id: str) -> str:
        return {"group-1": "Group A", "group-2": "Group B"}[group_id]


@pytest.fixture
def stub_client(monkeypatch: pytest.MonkeyPatch) -> type[_StubClient]:
    """Install the stub client with a small chapter list."""

    _StubClient.missing = False
    _StubClient.chapters = [
        make_chapter("c10", "10", volume="2", group_id="group-2"),
        make_chapter("c1", "1", volume="1", group_id="group-1"),
        make_chapter("c2", "2", volume="1", group_id="group-1"),
        make_chapter("c3", "3", volume=None, group_id=None),
        make_chapter("pt1", "1", volume="1", group_id="group-1", language="pt-br"),
    ]
    monkeypatch.setattr("mangadl.cli.MangaDexClient", _StubClient)
    return _StubClient


@pytest.fixture
def fetcher(monkeypatch: pytest.MonkeyPatch) -> FakeFetcher:
    """Replace the network page fetcher with a local image writer."""

    fake = FakeFetcher()
    monkeypatch.setattr("mangadl.cli.download_file", fake)
    return fake


@pytest.fixture
def no_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host `MANGADL_*` variables out of CLI runs."""

    for name in ("MANGADL_RETRY_DELAY_MS", "MANGADL_MAX_RETRIES", "MANGADL_OUTPUT_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MANGADL_RETRY_DELAY_MS", "0")
    monkeypatch.setenv("MANGADL_MAX_RETRIES", "2")


def test_download_rejects_invalid_manga_id(tmp_path: Path) -> None:
    """Non-UUID ids should fail before any request with a stage-aware message."""

    result = CliRunner().invoke(
        app, ["download", "not-a-uuid", "--language", "en", "--out", str(tmp_path)]
    )

    assert result.exit_code == 1
    assert "download failed at stage `input`: Invalid manga id `not-a-uuid`." in result.output
    assert "Hint:" in result.output


def test_download_reports_missing_config_file(tmp_path: Path) -> None:
    """A missing `--config` path should fail at the config stage."""

    result = CliRunner().invoke(
        app,
        [
            "download",
            _MANGA_ID,
            "--language",
            "en",
            "--config",
            str(tmp_path / "absent.yml"),
        ],
    )

    assert result.exit_code == 1
    assert "download failed at stage `config`: Config file not found" in result.output


def test_download_rejects_pdf_per_chapter_outside_volume_mode(tmp_path: Path) -> None:
    """`--pdf-per-chapter` is only meaningful for PDF volume downloads."""

    result = CliRunner().invoke(
        app,
        ["download", _MANGA_ID, "--language", "en", "--pdf-per-chapter", "--out", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "`--pdf-per-chapter` requires `--mode volume --format pdf`." in result.output


def test_info_prints_title_authors_and_languages(stub_client: type[_StubClient]) -> None:
    """Info should render manga metadata from the API client."""

    result = CliRunner().invoke(app, ["info", _MANGA_ID])

    assert result.exit_code == 0
    assert "Title: Stub: Manga" in result.output
    assert "Authors: A. Author" in result.output
    assert "Languages: en, pt-br" in result.output


def test_info_maps_api_errors_to_stage_diagnostics(stub_client: type[_StubClient]) -> None:
    """API failures should surface as `api` stage errors with a hint."""

    stub_client.missing = True

    result = CliRunner().invoke(app, ["info", _MANGA_ID])

    assert result.exit_code == 1
    assert "info failed at stage `api`" in result.output
    assert "Hint: Check the manga id" in result.output


def test_list_chapters_prints_sorted_numbered_rows(stub_client: type[_StubClient]) -> None:
    """Chapters should be listed in numeric order with resolved group names."""

    result = CliRunner().invoke(app, ["list-chapters", _MANGA_ID, "--language", "en"])

    assert result.exit_code == 0
    rows = [line for line in result.output.splitlines() if line[:1].isdigit()]
    assert rows == [
        "1. Cap 1 - Vol 1 - [Group A]",
        "2. Cap 2 - Vol 1 - [Group A]",
        "3. Cap 3 - Vol No Volume - [No Group]",
        "4. Cap 10 - Vol 2 - [Group B]",
    ]


def test_list_chapters_fails_for_language_without_chapters(
    stub_client: type[_StubClient],
) -> None:
    """An empty language feed should fail at the chapters stage."""

    result = CliRunner().invoke(app, ["list-chapters", _MANGA_ID, "--language", "fr"])

    assert result.exit_code == 1
    assert "list-chapters failed at stage `chapters`" in result.output


def test_download_selected_chapters_as_zip(
    tmp_path: Path,
    stub_client: type[_StubClient],
    fetcher: FakeFetcher,
    no_config_env: None,
) -> None:
    """Chapter mode should pack each selected position under the manga folder."""

    result = CliRunner().invoke(
        app,
        [
            "download",
            _MANGA_ID,
            "--language",
            "en",
            "--format",
            "zip",
            "--chapters",
            "1,4",
            "--out",
            str(tmp_path),
        ],
    )

    manga_dir = tmp_path / "Stub- Manga"
    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in manga_dir.iterdir()) == [
        "Stub- Manga - Vol 1 - Cap 01 [en][Group A].zip",
        "Stub- Manga - Vol 2 - Cap 10 [en][Group B].zip",
    ]
    with zipfile.ZipFile(manga_dir / "Stub- Manga - Vol 2 - Cap 10 [en][Group B].zip") as archive:
        assert archive.namelist() == ["c10-1.png", "c10-2.png"]
    assert "Downloading Stub- Manga: chapters 1,4 of 4" in result.output
    assert "Jobs: 2/2 succeeded" in result.output
    assert "Pages: 4 downloaded" in result.output
    assert len(fetcher.calls) == 4


def test_download_volumes_as_pdf(
    tmp_path: Path,
    stub_client: type[_StubClient],
    fetcher: FakeFetcher,
    no_config_env: None,
) -> None:
    """Volume mode should write one PDF per volume bucket plus unvolumed chapters."""

    result = CliRunner().invoke(
        app,
        [
            "download",
            _MANGA_ID,
            "--language",
            "en",
            "--mode",
            "volume",
            "--volumes",
            "1,none",
            "--out",
            str(tmp_path),
        ],
    )

    manga_dir = tmp_path / "Stub- Manga"
    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in manga_dir.iterdir()) == [
        "Stub- Manga - Vol 01 [en][Group A].pdf",
        "Stub- Manga - Vol No Volume - Cap 03 [en][No Group].pdf",
    ]
    assert "Downloading Stub- Manga: volumes 1, No Volume" in result.output


def test_download_exits_non_zero_when_a_job_fails(
    tmp_path: Path,
    stub_client: type[_StubClient],
    monkeypatch: pytest.MonkeyPatch,
    no_config_env: None,
) -> None:
    """Any failed job should be listed and make the command exit with code 1."""

    monkeypatch.setattr("mangadl.cli.download_file", FakeFetcher(failures={"c2-1.png": -1}))

    result = CliRunner().invoke(
        app,
        [
            "download",
            _MANGA_ID,
            "--language",
            "en",
            "--format",
            "loose",
            "--chapters",
            "1-2",
            "--out",
            str(tmp_path),
        ],
    )

    assert result.exit_code == 1
    assert "FAIL Stub- Manga - Vol 1 - Cap 02 [en][Group A] (download)" in result.output
    assert "Jobs: 1/2 succeeded" in result.output


def test_download_rejects_out_of_range_selection(
    tmp_path: Path,
    stub_client: type[_StubClient],
    fetcher: FakeFetcher,
    no_config_env: None,
) -> None:
    """Chapter positions beyond the list should fail at the selection stage."""

    result = CliRunner().invoke(
        app,
        ["download", _MANGA_ID, "--language", "en", "--chapters", "9", "--out", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "download failed at stage `selection`" in result.output
    assert fetcher.calls == []


def test_download_logs_stage_failure_for_unexpected_errors(
    tmp_path: Path,
    stub_client: type[_StubClient],
    fetcher: FakeFetcher,
    monkeypatch: pytest.MonkeyPatch,
    no_config_env: None,
) -> None:
    """An error escaping the download stage should be logged and reported."""

    async def explode(self: object, **kwargs: object) -> list[object]:
        raise RuntimeError("worker crashed")

    monkeypatch.setattr("mangadl.cli.DownloadManager.download_chapters", explode)

    result = CliRunner().invoke(
        app,
        ["download", _MANGA_ID, "--language", "en", "--out", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert (
        "[phase] level=ERROR stage=download event=failure error_type=RuntimeError"
        in result.output
    )
    assert "download failed" in result.output
