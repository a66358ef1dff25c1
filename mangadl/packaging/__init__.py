"""Artifact packing components.

This package turns staged page folders into zip archives and PDF documents.
"""

from .packer import ArtifactPacker, list_images

__all__ = ["ArtifactPacker", "list_images"]
