"""Domain exceptions for pipeline and CLI diagnostics."""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class DownloadError(PipelineStageError):
    """Raised when one remote file cannot be fetched to disk.

    `failure_kind` is one of `timeout`, `http_error`, `transport` or `empty_body`.
    """

    def __init__(
        self,
        detail: str,
        *,
        url: str,
        failure_kind: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(stage="page", detail=detail)
        self.url = url
        self.failure_kind = failure_kind
        self.status_code = status_code


class ContentError(PipelineStageError):
    """Raised when a chapter resolves to no downloadable pages."""

    def __init__(self, detail: str) -> None:
        super().__init__(stage="chapter", detail=detail)


class PartialChapterError(PipelineStageError):
    """Raised when some pages of a chapter failed after one full pass."""

    def __init__(self, failed_count: int, total_count: int) -> None:
        super().__init__(
            stage="chapter",
            detail=f"{failed_count} of {total_count} pages failed.",
        )
        self.failed_count = failed_count
        self.total_count = total_count


class PackagingError(PipelineStageError):
    """Raised when an archive or document cannot be written."""

    def __init__(self, detail: str, *, hint: str | None = None) -> None:
        super().__init__(stage="package", detail=detail, hint=hint)
