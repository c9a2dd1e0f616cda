"""Error kinds raised by the worker.

ConfigError aborts startup. StoreError and ArchiveError fail a job when
raised while fetching, extracting or uploading, and are only logged when
raised while deleting the bundle.
"""


class UnzipperError(Exception):
    """Base class for worker errors."""


class ConfigError(UnzipperError):
    """Invalid process configuration. The worker must not start."""


class StoreError(UnzipperError):
    """An artifact store call failed.

    The message is the upstream response body text (or the transport
    error text when no response was received).
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ArchiveError(UnzipperError):
    """The fetched bundle is not a readable ZIP archive."""
