"""Remote content API clients."""

from .mangadex import MangaDexApiError, MangaDexClient, manga_authors, manga_title

__all__ = ["MangaDexApiError", "MangaDexClient", "manga_authors", "manga_title"]
