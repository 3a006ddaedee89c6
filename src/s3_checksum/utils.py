import asyncio
import base64
import binascii
import re
import sys
import time
import boto3
from botocore.config import Config
from s3_checksum.structs import PartRange


def get_s3_client(
    boto_session,
    *,
    region=None,
    endpoint_url=None,
    use_path_style=False,
) -> boto3.client:
    """
    Create and return a boto3 S3 client with optional custom configuration.

    Args:
        boto_session: boto3.Session object
        region: AWS region or custom region for S3-compatible server
        endpoint_url: Optional custom S3 endpoint (e.g. https://minio.local:9000)
        use_path_style: Whether to use path-style addressing

    Returns:
        boto3 S3 client
    """
    return boto_session.client(
        "s3",
        endpoint_url=endpoint_url,
        region_name=region,
        config=Config(s3={"addressing_style": "path" if use_path_style else "auto"}),
    )


class ProgressMonitor:
    """Track and display hashing or transfer progress per part."""

    def __init__(self, total_parts: int = 0, label: str = "Processed", stream=None):
        """
        Initialize the progress monitor.

        Args:
            total_parts: Total number of parts to process
            label: Verb shown in front of the byte count
            stream: Text stream to draw on (default: stderr)
        """
        self.start_time = None
        self.total_bytes = 0
        self.completed_parts = 0
        self.total_parts = total_parts
        self.label = label
        self.stream = stream if stream is not None else sys.stderr
        self.lock = asyncio.Lock()
        self.last_line_length = 0  # Track the length of the last printed line

    def start(self):
        """Start monitoring."""
        self.start_time = time.time()

    async def part_completed(self, size: int):
        """Record a finished part of ``size`` bytes."""
        async with self.lock:
            self.completed_parts += 1
            self.total_bytes += size
            self.display_progress()

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time

    def display_progress(self):
        """Display current speed, completed parts and total data processed."""
        elapsed = self.elapsed
        speed = self.total_bytes / elapsed if elapsed > 0 else 0
        progress_str = f"{self.label}: {format_size(self.total_bytes)} | Speed: {format_speed(speed)}"
        if self.total_parts > 0:
            progress_str += f" | Parts: {self.completed_parts}/{self.total_parts}"

        # Pad with spaces to overwrite any remaining characters from previous line
        if len(progress_str) < self.last_line_length:
            progress_str += " " * (self.last_line_length - len(progress_str))
        self.last_line_length = len(progress_str)

        print(f"\r{progress_str}", end="", file=self.stream, flush=True)

    def finish(self):
        if self.last_line_length:
            print(file=self.stream)


def calculate_parts(file_size: int, part_size: int) -> list[PartRange]:
    """
    Calculate part ranges for a multipart object.

    Args:
        file_size: Total size of the file in bytes
        part_size: Size of each part in bytes

    Returns:
        List of PartRange values with 1-based part numbers and half-open
        [start, end) byte ranges
    """
    parts = []
    for index, start in enumerate(range(0, file_size, part_size)):
        end = min(start + part_size, file_size)
        parts.append(PartRange(part_number=index + 1, start=start, end=end, size=end - start))

    return parts


def format_digest(digest: bytes, *, hex_output: bool = False) -> str:
    """Render raw digest bytes as base64 (S3's checksum form) or lowercase hex."""
    if hex_output:
        return digest.hex()
    return base64.b64encode(digest).decode("ascii")


def format_aggregate(digest: bytes, part_count: int, *, hex_output: bool = False) -> str:
    """
    Render an aggregate digest the way S3 reports it.

    Multipart aggregates carry a ``-N`` part count suffix; a single-part
    object is reported as the plain digest.
    """
    rendered = format_digest(digest, hex_output=hex_output)
    if part_count > 1:
        rendered = f"{rendered}-{part_count}"
    return rendered


def format_etag(etag: bytes, part_count: int) -> str:
    """ETags are always hex."""
    return format_aggregate(etag, part_count, hex_output=True)


def _strip_suffix(value: str) -> tuple[str, int]:
    value = value.strip().strip('"')
    match = re.match(r"^(.*?)(?:-(\d+))?$", value)
    digest, count = match.groups()
    return digest, int(count) if count else 1


def etag_to_bytes(etag: str) -> tuple[bytes, int]:
    """
    Parse an S3 ETag such as ``"9b2cf535f27731c974343645a3985328-4"``.

    Returns:
        Tuple of (raw digest bytes, part count)
    """
    digest, count = _strip_suffix(etag)
    try:
        return bytes.fromhex(digest), count
    except ValueError:
        raise ValueError(f"Invalid ETag: {etag}")


def checksum_to_bytes(checksum: str) -> tuple[bytes, int]:
    """Parse an S3 base64 checksum, optionally suffixed with ``-N``."""
    digest, count = _strip_suffix(checksum)
    try:
        return base64.b64decode(digest, validate=True), count
    except binascii.Error:
        raise ValueError(f"Invalid checksum: {checksum}")


def format_size(size: int) -> str:
    """
    Format size in bytes to human-readable format.

    Args:
        size: Size in bytes

    Returns:
        Formatted size string
    """
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    return f"{size:.2f} {units[unit_index]}"


def format_speed(speed: float) -> str:
    """
    Format speed in bytes/second to human-readable format.

    Args:
        speed: Speed in bytes per second

    Returns:
        Formatted speed string
    """
    units = ["B/s", "KB/s", "MB/s", "GB/s"]
    unit_index = 0

    while speed >= 1024 and unit_index < len(units) - 1:
        speed /= 1024
        unit_index += 1

    return f"{speed:.2f} {units[unit_index]}"


def parse_size(size_str: str) -> int:
    """
    Parse a size string with optional suffix (KB, MB, GB) to bytes.

    Args:
        size_str: Size string (e.g., "5MB", "10KB", "1GB")

    Returns:
        Size in bytes
    """
    match = re.match(r"^(\d+)([KMG]B)?$", size_str, re.IGNORECASE)
    if not match:
        raise ValueError(
            f"Invalid size format: {size_str}. Expected format: NUMBER[KB|MB|GB]"
        )

    value, unit = match.groups()
    value = int(value)

    if unit:
        unit = unit.upper()
        if unit == "KB":
            value *= 1024
        elif unit == "MB":
            value *= 1024**2
        elif unit == "GB":
            value *= 1024**3

    return value
