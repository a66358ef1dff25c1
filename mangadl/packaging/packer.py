"""Artifact packing for downloaded page folders.

Responsibilities:
- Write a page folder into a deflate zip, keeping its subfolder layout.
- Compose page images into a PDF with one page per image, sized to the image.
- Embed page bytes as they are; only transparent images are flattened (losslessly).
- Remove partially written artifacts when packing fails.
"""

from __future__ import annotations

import io
import os
from pathlib import Path
import zipfile

import img2pdf
from PIL import Image
from pypdf import PageObject, PdfReader, PdfWriter

from ..errors import PackagingError
from ..models.datatypes import ArtifactFormat
from ..naming.filenames import natural_sort_key
from ..telemetry.logger import RunLogger

_IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png"})
_PDF_DPI = (72, 72)
_EMBED_ERRORS = (
    OSError,
    ValueError,
    Image.DecompressionBombError,
    img2pdf.ImageOpenError,
    img2pdf.AlphaChannelError,
    img2pdf.PdfTooLargeError,
)


def _walk_files(source_dir: Path) -> list[Path]:
    """Return every regular file below `source_dir`, naturally ordered by relative path."""

    found: list[Path] = []
    for root, _dirs, files in os.walk(source_dir):
        found.extend(Path(root) / name for name in files)
    return sorted(
        found,
        key=lambda path: natural_sort_key(path.relative_to(source_dir).as_posix()),
    )


def list_images(source_dir: Path) -> list[Path]:
    """Return JPEG/PNG files below `source_dir` in natural page order."""

    return [path for path in _walk_files(source_dir) if path.suffix.lower() in _IMAGE_SUFFIXES]


class ArtifactPacker:
    """Turn a staged page folder into a zip archive or PDF document."""

    def __init__(
        self,
        *,
        compression_level: int = 6,
        default_page_size: tuple[int, int] = (800, 1200),
        run_logger: RunLogger | None = None,
    ) -> None:
        self.compression_level = compression_level
        self.default_page_size = default_page_size
        self._run_logger = run_logger

    def pack(
        self,
        artifact_format: ArtifactFormat,
        source_dir: Path,
        output_dir: Path,
        name: str,
    ) -> Path:
        """Dispatch to the writer matching `artifact_format`."""

        if artifact_format is ArtifactFormat.ZIP:
            return self.create_archive(source_dir, output_dir, name)
        if artifact_format is ArtifactFormat.PDF:
            return self.create_document(source_dir, output_dir, name)
        raise PackagingError(
            f"Format `{artifact_format.value}` is not a packed artifact.",
            hint="Loose output is written directly and needs no packing.",
        )

    def create_archive(self, source_dir: Path, output_dir: Path, name: str) -> Path:
        """Write every file below `source_dir` into `output_dir/name` as a zip archive."""

        output_path = output_dir / name
        output_dir.mkdir(parents=True, exist_ok=True)
        entries = 0
        try:
            with zipfile.ZipFile(
                output_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            ) as archive:
                for path in _walk_files(source_dir):
                    try:
                        archive.write(path, arcname=path.relative_to(source_dir).as_posix())
                    except FileNotFoundError:
                        self._log("WARNING", "entry_missing", entry=path.name)
                        continue
                    entries += 1
        except (OSError, zipfile.BadZipFile, ValueError) as exc:
            self._discard(output_path)
            raise PackagingError(f"Failed to write archive `{name}`: {exc}") from exc

        self._log("INFO", "complete", artifact=name, entries=entries)
        return output_path

    def create_document(self, source_dir: Path, output_dir: Path, name: str) -> Path:
        """Compose the images below `source_dir` into the PDF `output_dir/name`.

        A folder without images yields a valid document with zero pages.
        """

        output_path = output_dir / name
        output_dir.mkdir(parents=True, exist_ok=True)
        images = list_images(source_dir)
        writer = PdfWriter()
        try:
            for image_path in images:
                writer.add_page(self._render_page(image_path))
            with output_path.open("wb") as handle:
                writer.write(handle)
        except _EMBED_ERRORS as exc:
            self._discard(output_path)
            raise PackagingError(f"Failed to write document `{name}`: {exc}") from exc

        self._log("INFO", "complete", artifact=name, pages=len(images))
        return output_path

    def probe_size(self, image_path: Path) -> tuple[int, int]:
        """Return the pixel size of an image, or the default page size if unreadable."""

        return _image_size(image_path) or self.default_page_size

    def _render_page(self, image_path: Path) -> PageObject:
        """Embed one image on a page of its own pixel size.

        JPEG data is passed through and PNG data stays lossless. Pages whose
        size cannot be probed are fitted and centered on the default page size.
        """

        if _image_size(image_path) is None:
            layout = img2pdf.get_layout_fun(
                pagesize=self.default_page_size, fit=img2pdf.FitMode.into
            )
        else:
            layout = img2pdf.get_fixed_dpi_layout_fun(_PDF_DPI)
        document = img2pdf.convert(_page_bytes(image_path), layout_fun=layout)
        return PdfReader(io.BytesIO(document)).pages[0]

    def _discard(self, output_path: Path) -> None:
        try:
            output_path.unlink(missing_ok=True)
        except OSError:
            self._log("WARNING", "discard_failed", artifact=output_path.name)

    def _log(self, level: str, event: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_event(level, "package", event, **context)


def _image_size(image_path: Path) -> tuple[int, int] | None:
    try:
        with Image.open(image_path) as image:
            width, height = image.size
    except (OSError, ValueError):
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def _page_bytes(image_path: Path) -> bytes:
    """Return the bytes to embed for one page.

    Transparent images are composited onto white and re-encoded as PNG;
    everything else is returned untouched.
    """

    data = image_path.read_bytes()
    try:
        with Image.open(io.BytesIO(data)) as image:
            if not _has_alpha(image):
                return data
            rgba = image.convert("RGBA")
    except (OSError, ValueError):
        return data
    background = Image.new("RGB", rgba.size, "white")
    background.paste(rgba, mask=rgba.getchannel("A"))
    buffer = io.BytesIO()
    background.save(buffer, format="PNG")
    return buffer.getvalue()


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
