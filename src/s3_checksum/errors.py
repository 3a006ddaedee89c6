"""Error definitions for s3_checksum."""

from typing import Any, Dict


class S3ChecksumError(Exception):
    """Base exception for all s3_checksum errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigError(S3ChecksumError):
    """Invalid input detected before any part is read."""
    pass


class ChecksumError(S3ChecksumError):
    """Hashing a part failed."""

    def __init__(self, message: str, part_number: int, **context: Any) -> None:
        super().__init__(message, part_number=part_number, **context)
        self.part_number = part_number


class ReadError(ChecksumError):
    """A part could not be read in full."""
    pass


class AggregationError(S3ChecksumError):
    """Part digests cannot be combined into an aggregate."""
    pass


class ManifestError(S3ChecksumError):
    """Manifest file is missing or malformed."""
    pass


class TransferError(S3ChecksumError):
    """An S3 request failed."""
    pass


class VerificationError(S3ChecksumError):
    """Local and reference checksums disagree."""

    def __init__(self, message: str, mismatches: list[str], **context: Any) -> None:
        super().__init__(message, **context)
        self.mismatches = mismatches
