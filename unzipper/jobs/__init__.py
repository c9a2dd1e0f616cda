"""Unzip job pipeline.

Public API:
    unzip_bundle(build_id, token, store, parallel_upload_limit) -> None
    run_unzip_job(build_id, token, settings) -> None
    chunk_entries(entries, limit) -> list[list[ArtifactEntry]]
    extract_entries(data) -> list[ArtifactEntry]
"""

from unzipper.jobs.archive import extract_entries
from unzipper.jobs.types import ArtifactEntry, RetryPolicy
from unzipper.jobs.unzip import chunk_entries, run_unzip_job, unzip_bundle

__all__ = [
    "ArtifactEntry",
    "RetryPolicy",
    "chunk_entries",
    "extract_entries",
    "run_unzip_job",
    "unzip_bundle",
]
