"""Input/output components for mangadl.

This package contains the streaming page downloader and the temporary
workspace used to stage pages before packing.
"""

from .downloader import download_file
from .workspace import Workspace, dir_has_any_file, is_non_empty_file

__all__ = ["Workspace", "dir_has_any_file", "download_file", "is_non_empty_file"]
