"""Archive extraction with format dispatch on the filename extension.

Hey future me - there are exactly two codecs here:

- 7z/tar/zip go through the `7z` executable. We only care about the exit code, the member
  listing isn't parsed (7z's stdout format changes between versions).
- rar goes through the `rarfile` library, which is synchronous, so it runs in a worker
  thread via asyncio.to_thread. It does need `unrar`/`unar`/`bsdtar` on PATH at runtime.

Everything else (.pdf, .flac, .jpg, ...) is a passthrough: extract() returns None
and the file stays where it was downloaded. That is NOT an error for the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import rarfile

from plexcaster.domain.exceptions import ExtractionError, ExtractionErrorKind

logger = logging.getLogger(__name__)


class ExtractionStrategy(str, Enum):
    """Which codec unpacked the archive."""

    SEVEN_ZIP = "7z"
    RAR = "rar"


SEVEN_ZIP_EXTENSIONS = frozenset({"7z", "tar", "zip"})
RAR_EXTENSIONS = frozenset({"rar"})


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of a successful extraction."""

    strategy: ExtractionStrategy
    output_dir: Path
    # Only filled by the rar strategy (the 7z CLI output isn't parsed)
    members: list[str] = field(default_factory=list)


def archive_extension(file_path: Path) -> str:
    """Lower-cased extension without the dot ("Album.ZIP" -> "zip")."""
    return file_path.suffix.lower().lstrip(".")


class ArchiveExtractor:
    """Unpacks downloaded archives into an artist folder."""

    def __init__(self, seven_zip_binary: str = "7z") -> None:
        self.seven_zip_binary = seven_zip_binary

    async def extract(self, file_path: Path, output_dir: Path) -> ExtractionResult | None:
        """
        Extract an archive into output_dir.

        Args:
            file_path: Downloaded archive
            output_dir: Target directory (created if missing)

        Returns:
            ExtractionResult on success, None when the extension has no extractor

        Raises:
            ExtractionError: CODEC_FAILURE when the codec reports an error
        """
        try:
            return await self._dispatch(file_path, output_dir)
        except ExtractionError as e:
            if e.kind is ExtractionErrorKind.UNSUPPORTED_FORMAT:
                logger.info("Leaving %s as is: %s", file_path.name, e.message)
                return None
            raise

    async def _dispatch(self, file_path: Path, output_dir: Path) -> ExtractionResult:
        ext = archive_extension(file_path)

        if ext in SEVEN_ZIP_EXTENSIONS:
            output_dir.mkdir(parents=True, exist_ok=True)
            await self._extract_seven_zip(file_path, output_dir)
            return ExtractionResult(ExtractionStrategy.SEVEN_ZIP, output_dir)

        if ext in RAR_EXTENSIONS:
            output_dir.mkdir(parents=True, exist_ok=True)
            members = await asyncio.to_thread(self._extract_rar_sync, file_path, output_dir)
            return ExtractionResult(ExtractionStrategy.RAR, output_dir, members)

        raise ExtractionError(
            f"No extractor for extension {ext!r}",
            kind=ExtractionErrorKind.UNSUPPORTED_FORMAT,
            path=file_path,
        )

    async def _extract_seven_zip(self, file_path: Path, output_dir: Path) -> None:
        logger.info("Extracting %s with %s", file_path.name, self.seven_zip_binary)
        try:
            process = await asyncio.create_subprocess_exec(
                self.seven_zip_binary,
                "x",
                "-y",
                f"-o{output_dir}",
                str(file_path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            # FileNotFoundError when 7z isn't installed
            raise ExtractionError(
                f"Cannot run {self.seven_zip_binary}: {e}",
                kind=ExtractionErrorKind.CODEC_FAILURE,
                path=file_path,
            ) from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise ExtractionError(
                f"{self.seven_zip_binary} exited with {process.returncode}: {detail}",
                kind=ExtractionErrorKind.CODEC_FAILURE,
                path=file_path,
            )

    @staticmethod
    def _extract_rar_sync(file_path: Path, output_dir: Path) -> list[str]:
        logger.info("Extracting %s with rarfile", file_path.name)
        try:
            with rarfile.RarFile(file_path) as archive:
                members = archive.namelist()
                archive.extractall(path=output_dir)
        except (rarfile.Error, OSError) as e:
            raise ExtractionError(
                f"rar extraction failed for {file_path.name}: {e}",
                kind=ExtractionErrorKind.CODEC_FAILURE,
                path=file_path,
            ) from e
        return members
