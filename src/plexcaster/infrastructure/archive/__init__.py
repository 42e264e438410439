"""Archive extraction and post-extraction filesystem cleanup."""

from plexcaster.infrastructure.archive.extractor import (
    ArchiveExtractor,
    ExtractionResult,
    ExtractionStrategy,
)
from plexcaster.infrastructure.archive.normalizer import FilesystemNormalizer

__all__ = [
    "ArchiveExtractor",
    "ExtractionResult",
    "ExtractionStrategy",
    "FilesystemNormalizer",
]
