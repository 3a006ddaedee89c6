"""S3 multipart checksum and ETag tool."""

import asyncio
import sys

from s3_checksum.cli import cli
from s3_checksum.errors import S3ChecksumError


def main(argv=None):
    try:
        asyncio.run(cli(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        sys.exit(1)
    except S3ChecksumError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
