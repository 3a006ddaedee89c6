import argparse
import re
from s3_checksum.constants import (
    DEFAULT_ALGORITHM,
    DEFAULT_MANIFEST,
    DEFAULT_PART_SIZE,
    DEFAULT_REGION,
    DEFAULT_THREADS,
    MODE_CHECKSUM,
    MODE_UPLOAD,
    MODE_VERIFY,
    SUPPORTED_ALGORITHMS,
)
from s3_checksum.utils import parse_size


def _add_checksum_arguments(parser: argparse.ArgumentParser, manifest_default=None):
    parser.add_argument("--file", required=True, help="Local file to checksum")
    parser.add_argument(
        "--part-size",
        type=str,
        default=f"{DEFAULT_PART_SIZE // 1024**2}MB",
        help="Part size (e.g., '8MB', '64MB'). Accepts suffixes KB, MB, GB. Minimum 5MB.",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=DEFAULT_THREADS,
        help=f"Number of parts hashed in parallel (default: {DEFAULT_THREADS})",
    )
    parser.add_argument(
        "--algorithm",
        choices=sorted(SUPPORTED_ALGORITHMS),
        default=DEFAULT_ALGORITHM,
        help=f"Part checksum algorithm (default: {DEFAULT_ALGORITHM})",
    )
    parser.add_argument(
        "--manifest",
        default=manifest_default,
        help="Manifest file listing every part and the aggregates; .csv writes the simple CSV form",
    )
    parser.add_argument(
        "--print-hex", action="store_true", help="Print checksums in hex instead of base64"
    )
    parser.add_argument(
        "--progress", action="store_true", help="Show progress while hashing and uploading"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")


def _add_s3_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--region",
        type=str,
        default=DEFAULT_REGION,
        help=f"AWS region or custom region for S3-compatible server (default: {DEFAULT_REGION})",
    )
    parser.add_argument("--profile", type=str, help="AWS shared config profile")
    parser.add_argument(
        "--endpoint-url", type=str, help="Custom S3 endpoint URL (default: AWS S3)"
    )
    parser.add_argument(
        "--use-path-style",
        action="store_true",
        help="Use path-style addressing instead of virtual-hosted style",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-checksum",
        description="Compute and verify S3 multipart checksums and ETags for local files.",
    )
    subparsers = parser.add_subparsers(dest="mode", required=True)

    checksum_parser = subparsers.add_parser(
        MODE_CHECKSUM, help="Compute part checksums, the checksum of checksums and the ETag"
    )
    _add_checksum_arguments(checksum_parser, manifest_default=DEFAULT_MANIFEST)

    upload_parser = subparsers.add_parser(
        MODE_UPLOAD, help="Upload a file with per-part checksums and compare S3's aggregates"
    )
    _add_checksum_arguments(upload_parser)
    upload_parser.add_argument("--bucket", required=True, help="S3 bucket name for upload")
    upload_parser.add_argument("--key", help="S3 object key (default: the file's name)")
    _add_s3_arguments(upload_parser)

    verify_parser = subparsers.add_parser(
        MODE_VERIFY, help="Verify a file against an S3 object or a JSON manifest"
    )
    _add_checksum_arguments(verify_parser)
    verify_parser.add_argument(
        "--s3-uri", help="S3 URI of the object to compare with (s3://bucket-name/object-key)"
    )
    _add_s3_arguments(verify_parser)

    return parser


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.threads < 1:
        parser.error(f"--threads must be a positive value, got {args.threads}")

    try:
        args.part_size_bytes = parse_size(args.part_size)
    except ValueError as e:
        parser.error(str(e))

    if args.mode == MODE_VERIFY:
        if bool(args.s3_uri) == bool(args.manifest):
            parser.error("verify mode requires exactly one of --s3-uri or --manifest")
        if args.s3_uri:
            try:
                args.bucket, args.key = parse_s3_uri(args.s3_uri)
            except ValueError as e:
                parser.error(str(e))

    return args


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """
    Parse S3 URI (s3://bucket-name/object-key) into components.

    Args:
        uri: S3 URI string

    Returns:
        Tuple of (bucket_name, object_key)

    Raises:
        ValueError: If the URI format is invalid
    """
    match = re.match(r"^s3://([^/]+)/(.+)$", uri)
    if not match:
        raise ValueError(
            f"Invalid S3 URI format: {uri}. Expected format: s3://bucket-name/object-key"
        )

    bucket_name, object_key = match.groups()
    return bucket_name, object_key
