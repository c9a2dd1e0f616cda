"""ZIP bundle extraction.

Reads the whole bundle from memory and returns its files in the archive's
internal entry order. Directory members carry no payload and are skipped.
Member names become store paths under the build's ARTIFACTS directory, so
absolute names and ``..`` segments are rejected.
"""

import io
import logging
import zipfile
import zlib

from unzipper.core.errors import ArchiveError
from unzipper.jobs.types import ArtifactEntry

logger = logging.getLogger(__name__)

# Everything zipfile raises for corrupt, truncated, encrypted or
# unsupported members.
_ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    EOFError,
    NotImplementedError,
    RuntimeError,
    ValueError,
)


def _check_member_name(name: str) -> None:
    parts = name.replace("\\", "/").split("/")
    drive = len(parts[0]) == 2 and parts[0][1] == ":"
    if name.startswith(("/", "\\")) or drive or ".." in parts:
        raise ArchiveError(f"Unsafe member name in artifact bundle: {name!r}")


def extract_entries(data: bytes) -> list[ArtifactEntry]:
    """Decompress a ZIP bundle into an ordered list of ArtifactEntry.

    Raises:
        ArchiveError: If the data is not a valid ZIP archive, a member
            cannot be decompressed, or a member name is absolute or
            climbs out of the bundle with ``..``.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            members = [info for info in zf.infolist() if not info.is_dir()]
            for info in members:
                _check_member_name(info.filename)
            entries = [
                ArtifactEntry(name=info.filename, payload=zf.read(info))
                for info in members
            ]
    except _ARCHIVE_ERRORS as exc:
        raise ArchiveError(f"Invalid artifact bundle: {exc}") from exc

    logger.debug("Extracted %d entries from bundle", len(entries))
    return entries
