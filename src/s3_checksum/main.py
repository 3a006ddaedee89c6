"""
S3 Checksum Tool

Computes the per-part checksums, checksum of checksums and ETag S3 assigns to
a multipart object, uploads files with per-part integrity checks and verifies
local files against S3 objects or manifests.
"""

import logging
import os
import boto3
from s3_checksum.checksum import MultipartFile
from s3_checksum.errors import VerificationError
from s3_checksum.manifest import find_in_manifest, read_manifest, save_manifest
from s3_checksum.structs import AggregateResult, ObjectAttributes, UploadResult
from s3_checksum.upload import AsyncUploader
from s3_checksum.utils import (
    ProgressMonitor,
    format_aggregate,
    format_digest,
    format_etag,
    format_size,
    get_s3_client,
)
from s3_checksum.verify import ObjectInspector, compare_with_manifest, compare_with_remote

logger = logging.getLogger(__name__)


async def run_checksum(args) -> AggregateResult:
    """
    Compute the multipart checksums of ``args.file``.

    Args:
        args: Parsed command line arguments

    Returns:
        AggregateResult for the file
    """
    mpf = MultipartFile(
        args.file,
        part_size=args.part_size_bytes,
        threads=args.threads,
        hash_fun=args.algorithm,
    )
    logger.info(
        "Hashing %s (%s) in %d parts with %d threads",
        args.file,
        format_size(mpf.file_size),
        mpf.number_of_parts,
        mpf.threads,
    )

    monitor = ProgressMonitor(total_parts=mpf.number_of_parts, label="Hashed") if args.progress else None
    return await mpf.calculate_checksum(monitor)


def print_results(result: AggregateResult, *, hex_output: bool = False):
    """
    Print every part checksum followed by the two aggregates.

    Args:
        result: Aggregate result to print
        hex_output: Render checksums in hex instead of base64
    """
    algorithm = result.algorithm.upper()
    for part in result.part_list:
        print(f"Part: {part.part_number:05d}\t\t{format_digest(part.checksum, hex_output=hex_output)}")
    print(
        f"Amazon S3 {algorithm}:\t"
        f"{format_aggregate(result.checksum, result.part_count, hex_output=hex_output)}"
    )
    print(f"Amazon S3 Etag:\t{format_etag(result.etag, result.part_count)}")


def create_s3_client(args) -> boto3.client:
    session = boto3.Session(profile_name=args.profile) if args.profile else boto3.Session()
    return get_s3_client(
        session,
        region=args.region,
        endpoint_url=args.endpoint_url,
        use_path_style=args.use_path_style,
    )


def report_mismatches(target: str, mismatches: list[str]):
    if mismatches:
        for mismatch in mismatches:
            print(f"MISMATCH {mismatch}")
        raise VerificationError(f"{target} does not match the local file", mismatches, target=target)
    print(f"OK: {target} matches the local file")


async def run_upload(args, s3_client) -> UploadResult:
    """
    Checksum the file locally, upload it and compare S3's aggregates.

    Args:
        args: Parsed command line arguments
        s3_client: boto3 S3 client

    Returns:
        UploadResult reported by S3
    """
    local = await run_checksum(args)
    print_results(local, hex_output=args.print_hex)

    key = args.key or os.path.basename(args.file)
    print(f"Uploading {format_size(local.file_size)} to s3://{args.bucket}/{key} in {local.part_count} parts")

    monitor = ProgressMonitor(total_parts=local.part_count, label="Uploaded") if args.progress else None
    uploader = AsyncUploader(max_concurrent=args.threads, s3_client=s3_client, monitor=monitor)
    uploaded = await uploader.upload(local, args.bucket, key)

    if args.manifest:
        save_manifest(args.manifest, [local], hex_output=args.print_hex)

    remote = ObjectAttributes(
        bucket=args.bucket,
        key=key,
        size=local.file_size,
        etag=uploaded.etag,
        checksum=uploaded.checksum,
        algorithm=local.algorithm if uploaded.checksum is not None else None,
        part_count=len(uploaded.parts),
    )
    report_mismatches(f"s3://{args.bucket}/{key}", compare_with_remote(local, remote))
    return uploaded


async def run_verify(args, s3_client=None) -> AggregateResult:
    """
    Recompute the file's checksums and compare them with S3 or a manifest.

    Raises:
        VerificationError: If anything differs
    """
    local = await run_checksum(args)
    print_results(local, hex_output=args.print_hex)

    if args.manifest:
        recorded = find_in_manifest(read_manifest(args.manifest), args.file)
        report_mismatches(args.manifest, compare_with_manifest(local, recorded))
    else:
        remote = ObjectInspector(s3_client).get_attributes(args.bucket, args.key)
        report_mismatches(args.s3_uri, compare_with_remote(local, remote))

    return local
