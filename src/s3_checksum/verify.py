import logging
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from s3_checksum.constants import SUPPORTED_ALGORITHMS
from s3_checksum.errors import TransferError
from s3_checksum.structs import AggregateResult, ObjectAttributes
from s3_checksum.utils import (
    checksum_to_bytes,
    etag_to_bytes,
    format_aggregate,
    format_etag,
)

logger = logging.getLogger(__name__)


class ObjectInspector:
    """Read the integrity attributes S3 keeps for a stored object."""

    def __init__(self, s3_client: boto3.client):
        """
        Initialize with an S3 client.

        Args:
            s3_client: boto3.client object
        """
        self.s3_client = s3_client

    def get_attributes(self, bucket: str, key: str) -> ObjectAttributes:
        """
        Fetch ETag, checksum, part count and size of an S3 object.

        Args:
            bucket: S3 bucket name
            key: S3 object key

        Returns:
            ObjectAttributes with raw digest bytes

        Raises:
            TransferError: If the request fails
        """
        try:
            response = self.s3_client.get_object_attributes(
                Bucket=bucket,
                Key=key,
                ObjectAttributes=["ETag", "Checksum", "ObjectParts", "ObjectSize"],
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransferError(
                f"Cannot read attributes of s3://{bucket}/{key}: {exc}",
                bucket=bucket,
                key=key,
            ) from exc

        checksum = None
        algorithm = None
        try:
            etag, etag_parts = etag_to_bytes(response["ETag"])
            for name, s3_name in SUPPORTED_ALGORITHMS.items():
                value = response.get("Checksum", {}).get(f"Checksum{s3_name}")
                if value:
                    checksum, _ = checksum_to_bytes(value)
                    algorithm = name
                    break
        except ValueError as exc:
            raise TransferError(
                f"Unexpected attributes for s3://{bucket}/{key}: {exc}",
                bucket=bucket,
                key=key,
            ) from exc

        part_count = response.get("ObjectParts", {}).get("TotalPartsCount") or etag_parts

        return ObjectAttributes(
            bucket=bucket,
            key=key,
            size=response.get("ObjectSize", 0),
            etag=etag,
            checksum=checksum,
            algorithm=algorithm,
            part_count=part_count,
        )


def compare_with_remote(local: AggregateResult, remote: ObjectAttributes) -> list[str]:
    """
    Compare a local result with what S3 reports for the uploaded object.

    Digests are compared as raw bytes. The remote checksum is only compared
    when it was computed with the same algorithm.

    Returns:
        List of human-readable mismatch descriptions (empty when they agree)
    """
    mismatches = []
    if remote.size and remote.size != local.file_size:
        mismatches.append(f"size: local {local.file_size} != remote {remote.size}")
    if remote.part_count != local.part_count:
        mismatches.append(f"part count: local {local.part_count} != remote {remote.part_count}")
    if remote.etag != local.etag:
        mismatches.append(
            f"etag: local {format_etag(local.etag, local.part_count)} "
            f"!= remote {format_etag(remote.etag, remote.part_count)}"
        )
    if remote.checksum is None:
        logger.info("s3://%s/%s has no stored checksum; only the ETag was compared", remote.bucket, remote.key)
    elif remote.algorithm != local.algorithm:
        logger.info(
            "s3://%s/%s stores a %s checksum, local is %s; checksum not compared",
            remote.bucket,
            remote.key,
            remote.algorithm,
            local.algorithm,
        )
    elif remote.checksum != local.checksum:
        mismatches.append(
            f"checksum: local {format_aggregate(local.checksum, local.part_count)} "
            f"!= remote {format_aggregate(remote.checksum, remote.part_count)}"
        )
    return mismatches


def compare_with_manifest(local: AggregateResult, recorded: AggregateResult) -> list[str]:
    """
    Compare a fresh result with a manifest entry, part by part.

    Returns:
        List of human-readable mismatch descriptions (empty when they agree)
    """
    mismatches = []
    if recorded.part_size != local.part_size:
        mismatches.append(f"part size: local {local.part_size} != manifest {recorded.part_size}")
        return mismatches
    if recorded.algorithm != local.algorithm:
        mismatches.append(f"algorithm: local {local.algorithm} != manifest {recorded.algorithm}")
        return mismatches
    if recorded.part_count != local.part_count:
        mismatches.append(f"part count: local {local.part_count} != manifest {recorded.part_count}")

    for local_part, recorded_part in zip(local.part_list, recorded.part_list):
        if (
            local_part.size != recorded_part.size
            or local_part.checksum != recorded_part.checksum
            or local_part.md5_checksum != recorded_part.md5_checksum
        ):
            mismatches.append(f"part {local_part.part_number} differs")

    if recorded.checksum != local.checksum:
        mismatches.append("checksum differs")
    if recorded.etag != local.etag:
        mismatches.append("etag differs")
    return mismatches
