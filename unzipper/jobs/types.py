"""Types for the unzip job."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ArtifactEntry:
    """One file extracted from a build's artifact bundle.

    name is the archive member path, which is also the artifact path under
    builds/{build_id}/ARTIFACTS/ in the store.
    """

    name: str
    payload: bytes


@dataclass(frozen=True)
class RetryPolicy:
    """Whole-job retry settings handed to Celery.

    retry_delay is in seconds.
    """

    retry_limit: int = 3
    retry_delay: float = 5
