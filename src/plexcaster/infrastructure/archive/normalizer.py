"""Post-extraction permission fixup."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# rwxr-xr-x - Plex runs as its own user and must be able to list album folders
DIRECTORY_MODE = 0o755


class FilesystemNormalizer:
    """Makes freshly extracted album folders readable for the media server.

    Only the FIRST level below the artist folder is touched. Archives unpack as
    "<Year> - <Album>/" and some extractors create that folder as 0700.
    """

    def __init__(self, mode: int = DIRECTORY_MODE) -> None:
        self.mode = mode

    def normalize(self, output_dir: Path, archive_path: Path | None = None) -> list[Path]:
        """
        chmod every first-level subdirectory of output_dir and drop the archive.

        Args:
            output_dir: Artist folder the archive was extracted into
            archive_path: Source archive to delete (missing file is fine)

        Returns:
            Directories whose mode was set
        """
        touched: list[Path] = []
        if output_dir.is_dir():
            for entry in sorted(output_dir.iterdir()):
                if entry.is_dir() and not entry.is_symlink():
                    entry.chmod(self.mode)
                    touched.append(entry)

        if archive_path is not None:
            archive_path.unlink(missing_ok=True)
            logger.debug("Removed archive %s", archive_path)

        logger.info(
            "Normalized %d director%s in %s",
            len(touched),
            "y" if len(touched) == 1 else "ies",
            output_dir,
        )
        return touched
