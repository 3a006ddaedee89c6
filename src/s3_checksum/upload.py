import asyncio
import logging
import time
import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from s3_checksum.constants import SUPPORTED_ALGORITHMS
from s3_checksum.errors import ConfigError, TransferError
from s3_checksum.structs import (
    AggregateResult,
    PartUploadResult,
    UploadPartInfo,
    UploadResult,
)
from s3_checksum.utils import ProgressMonitor, checksum_to_bytes, etag_to_bytes, format_digest

logger = logging.getLogger(__name__)


def read_range(file_path: str, start: int, end: int) -> bytes:
    """Read bytes [start, end) of a file with a private file handle."""
    with open(file_path, "rb") as f:
        f.seek(start)
        data = f.read(end - start)
    if len(data) != end - start:
        raise OSError(f"Read {len(data)} bytes instead of the expected {end - start}")
    return data


class AsyncUploader:
    """Upload a file as an S3 multipart object using presigned part URLs."""

    def __init__(
        self,
        *,
        max_concurrent: int,
        s3_client: boto3.client,
        monitor: ProgressMonitor | None = None,
        expires_in: int = 3600,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the uploader.

        Args:
            max_concurrent: Maximum number of parts uploaded at the same time
            s3_client: boto3.client object
            monitor: Optional ProgressMonitor notified per uploaded part
            expires_in: Lifetime of the presigned part URLs in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.s3_client = s3_client
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.monitor = monitor
        self.expires_in = expires_in
        self.transport = transport

    def _client_kwargs(self) -> dict:
        client_kwargs = {"timeout": httpx.Timeout(None), "follow_redirects": True}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        return client_kwargs

    def create_multipart_upload(self, bucket: str, key: str, algorithm: str) -> str:
        """
        Initiate a multipart upload and return the upload ID.

        Args:
            bucket: S3 bucket name
            key: S3 object key
            algorithm: Part checksum algorithm ("sha256" or "sha1")

        Returns:
            Upload ID
        """
        response = self.s3_client.create_multipart_upload(
            Bucket=bucket,
            Key=key,
            ChecksumAlgorithm=SUPPORTED_ALGORITHMS[algorithm],
        )
        return response["UploadId"]

    def generate_upload_urls(
        self,
        *,
        bucket: str,
        key: str,
        upload_id: str,
        local: AggregateResult,
    ) -> list[UploadPartInfo]:
        """
        Generate presigned URLs for every part, carrying its local checksum.

        S3 rejects a part whose bytes do not match the checksum, so each part
        is verified on arrival against what was computed locally.
        """
        checksum_param = f"Checksum{SUPPORTED_ALGORITHMS[local.algorithm]}"
        upload_info = []
        for part in local.part_list:
            checksum = format_digest(part.checksum)
            params = {
                "Bucket": bucket,
                "Key": key,
                "UploadId": upload_id,
                "PartNumber": part.part_number,
                checksum_param: checksum,
            }
            url = self.s3_client.generate_presigned_url(
                "upload_part", Params=params, ExpiresIn=self.expires_in
            )

            start = (part.part_number - 1) * local.part_size
            upload_info.append(
                UploadPartInfo(
                    part_number=part.part_number,
                    start_byte=start,
                    end_byte=start + part.size,
                    url=url,
                    checksum=checksum,
                )
            )

        return upload_info

    async def upload_part(
        self,
        client: httpx.AsyncClient,
        file_path: str,
        part_info: UploadPartInfo,
        checksum_header: str,
    ) -> PartUploadResult:
        """
        Upload a single part with semaphore for concurrency control.

        Args:
            client: httpx.AsyncClient instance
            file_path: Local file to read the part from
            part_info: Part range, URL and checksum
            checksum_header: Name of the x-amz-checksum-* header

        Returns:
            PartUploadResult with the ETag S3 assigned to the part
        """
        part_number = part_info.part_number

        async with self.semaphore:
            start_time = time.time()

            try:
                content = await asyncio.to_thread(
                    read_range, file_path, part_info.start_byte, part_info.end_byte
                )
                headers = {
                    "Content-Length": str(len(content)),
                    checksum_header: part_info.checksum,
                }
                response = await client.put(part_info.url, headers=headers, content=content)
                response.raise_for_status()
                etag = response.headers.get("ETag", "").strip('"')

                if not etag:
                    raise TransferError(
                        f"No ETag received for part {part_number}", part_number=part_number
                    )
            except (httpx.HTTPError, OSError) as exc:
                raise TransferError(
                    f"Error uploading part {part_number}: {exc}", part_number=part_number
                ) from exc

            end_time = time.time()

        if self.monitor is not None:
            await self.monitor.part_completed(len(content))

        return PartUploadResult(
            part_number=part_number,
            bytes_transferred=len(content),
            time_taken=end_time - start_time,
            etag=etag,
            checksum=part_info.checksum,
        )

    async def upload_all(
        self, file_path: str, upload_info: list[UploadPartInfo], algorithm: str
    ) -> list[PartUploadResult]:
        """
        Upload all parts in parallel with concurrency control.

        Returns:
            List of upload results in part order
        """
        checksum_header = f"x-amz-checksum-{algorithm}"

        async with httpx.AsyncClient(**self._client_kwargs()) as client:
            tasks = []
            try:
                async with asyncio.TaskGroup() as tg:
                    for part_info in upload_info:
                        tasks.append(
                            tg.create_task(
                                self.upload_part(client, file_path, part_info, checksum_header)
                            )
                        )
            except BaseExceptionGroup as eg:
                errors, _ = eg.split(TransferError)
                if errors is None:
                    raise
                raise errors.exceptions[0]

        results = [task.result() for task in tasks]
        return sorted(results, key=lambda r: r.part_number)

    async def put_object(
        self, local: AggregateResult, bucket: str, key: str
    ) -> UploadResult:
        """
        Upload a single-part file with one presigned PUT.

        S3 reports a plain MD5 ETag and a plain checksum for such objects,
        matching the single-part aggregate.
        """
        part = local.part_list[0]
        checksum = format_digest(part.checksum)
        params = {
            "Bucket": bucket,
            "Key": key,
            f"Checksum{SUPPORTED_ALGORITHMS[local.algorithm]}": checksum,
        }
        url = self.s3_client.generate_presigned_url(
            "put_object", Params=params, ExpiresIn=self.expires_in
        )
        upload_info = UploadPartInfo(
            part_number=1, start_byte=0, end_byte=part.size, url=url, checksum=checksum
        )

        async with httpx.AsyncClient(**self._client_kwargs()) as client:
            result = await self.upload_part(
                client, local.filename, upload_info, f"x-amz-checksum-{local.algorithm}"
            )

        try:
            etag, _ = etag_to_bytes(result.etag)
        except ValueError as exc:
            raise TransferError(f"Unexpected response uploading s3://{bucket}/{key}: {exc}") from exc
        return UploadResult(
            bucket=bucket, key=key, etag=etag, checksum=part.checksum, parts=[result]
        )

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[PartUploadResult],
        algorithm: str,
    ) -> dict:
        """
        Complete a multipart upload.

        Returns:
            Response from S3 complete_multipart_upload API
        """
        checksum_key = f"Checksum{SUPPORTED_ALGORITHMS[algorithm]}"
        multipart_parts = [
            {"PartNumber": part.part_number, "ETag": part.etag, checksum_key: part.checksum}
            for part in parts
        ]

        return self.s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": multipart_parts},
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            self.s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Could not abort upload %s for s3://%s/%s: %s", upload_id, bucket, key, exc)

    async def upload(self, local: AggregateResult, bucket: str, key: str) -> UploadResult:
        """
        Upload the file described by ``local`` and return S3's aggregates.

        Any failure aborts the multipart upload so no orphaned parts remain.

        Raises:
            ConfigError: If S3 has no checksum algorithm matching ``local``
            TransferError: If any S3 request or part upload fails
        """
        if local.algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigError(
                f"S3 cannot store {local.algorithm} checksums. Expected one of: {', '.join(SUPPORTED_ALGORITHMS)}",
                algorithm=local.algorithm,
            )

        if local.part_count == 1:
            if self.monitor is not None:
                self.monitor.start()
            try:
                return await self.put_object(local, bucket, key)
            except (BotoCoreError, ClientError) as exc:
                raise TransferError(f"Upload to s3://{bucket}/{key} failed: {exc}") from exc
            finally:
                if self.monitor is not None:
                    self.monitor.finish()

        try:
            upload_id = self.create_multipart_upload(bucket, key, local.algorithm)
        except (BotoCoreError, ClientError) as exc:
            raise TransferError(f"Cannot start upload to s3://{bucket}/{key}: {exc}") from exc
        logger.info("Initiated multipart upload %s for s3://%s/%s", upload_id, bucket, key)

        try:
            upload_info = self.generate_upload_urls(
                bucket=bucket, key=key, upload_id=upload_id, local=local
            )
            if self.monitor is not None:
                self.monitor.start()
            try:
                parts = await self.upload_all(local.filename, upload_info, local.algorithm)
            finally:
                if self.monitor is not None:
                    self.monitor.finish()
            response = self.complete_multipart_upload(bucket, key, upload_id, parts, local.algorithm)
        except (BotoCoreError, ClientError) as exc:
            self.abort_multipart_upload(bucket, key, upload_id)
            raise TransferError(f"Upload to s3://{bucket}/{key} failed: {exc}") from exc
        except BaseException:
            self.abort_multipart_upload(bucket, key, upload_id)
            raise

        logger.info("Completed multipart upload of %d parts", len(parts))

        checksum = None
        try:
            etag, _ = etag_to_bytes(response["ETag"])
            remote_checksum = response.get(f"Checksum{SUPPORTED_ALGORITHMS[local.algorithm]}")
            if remote_checksum:
                checksum, _ = checksum_to_bytes(remote_checksum)
        except ValueError as exc:
            raise TransferError(
                f"Unexpected response completing s3://{bucket}/{key}: {exc}"
            ) from exc

        return UploadResult(bucket=bucket, key=key, etag=etag, checksum=checksum, parts=parts)
