"""
Multipart checksum engine.

Splits a file into fixed-size parts, hashes every part in parallel worker
threads and combines the part digests the way S3 does for multipart objects:
the aggregate checksum is the hash of the concatenated part checksums and the
ETag is the MD5 of the concatenated part MD5s.
"""

import asyncio
import hashlib
import logging
import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from s3_checksum.constants import (
    DEFAULT_ALGORITHM,
    DEFAULT_THREADS,
    MIN_PART_SIZE,
    SUPPORTED_ALGORITHMS,
)
from s3_checksum.errors import AggregationError, ChecksumError, ConfigError, ReadError
from s3_checksum.pool import HashState, ResourcePool, reset_hash_state
from s3_checksum.structs import AggregateResult, PartInfo, PartRange
from s3_checksum.utils import ProgressMonitor, calculate_parts

logger = logging.getLogger(__name__)


class ChecksumCancelled(Exception):
    """Raised inside a worker that noticed a sibling failed."""


def resolve_hash_function(hash_fun: str | Callable | None) -> tuple[Callable, str]:
    """
    Turn an algorithm name or hash constructor into (constructor, name).

    Args:
        hash_fun: Algorithm name such as "sha256", a hashlib-style
            constructor, or None for the default

    Returns:
        Tuple of (zero-argument hash constructor, algorithm name)
    """
    if hash_fun is None:
        hash_fun = DEFAULT_ALGORITHM

    if isinstance(hash_fun, str):
        name = hash_fun.lower()
        if name not in SUPPORTED_ALGORITHMS:
            raise ConfigError(
                f"Unsupported algorithm: {hash_fun}. Expected one of: {', '.join(SUPPORTED_ALGORITHMS)}",
                algorithm=hash_fun,
            )
        return getattr(hashlib, name), name

    if not callable(hash_fun):
        raise ConfigError(f"Hash function must be callable, got {hash_fun!r}")
    return hash_fun, hash_fun().name


def aggregate_parts(
    parts: list[PartInfo],
    hash_fun: Callable,
    *,
    filename: str,
    part_size: int,
    algorithm: str,
) -> AggregateResult:
    """
    Combine sorted part digests into the object's checksum and ETag.

    A single part stands for the whole object, so its digests are used as
    they are. With more parts the checksum is ``hash_fun`` over the
    concatenated part checksums and the ETag is MD5 over the concatenated
    part MD5s, both in ascending part order.

    Raises:
        AggregationError: If ``parts`` is empty
    """
    if not parts:
        raise AggregationError("Cannot aggregate zero parts", filename=filename)

    if len(parts) == 1:
        checksum = parts[0].checksum
        etag = parts[0].md5_checksum
    else:
        checksum_hash = hash_fun()
        etag_hash = hashlib.md5()
        for part in parts:
            checksum_hash.update(part.checksum)
            etag_hash.update(part.md5_checksum)
        checksum = checksum_hash.digest()
        etag = etag_hash.digest()

    return AggregateResult(
        filename=filename,
        part_size=part_size,
        part_list=list(parts),
        checksum=checksum,
        etag=etag,
        algorithm=algorithm,
    )


class MultipartFile:
    """Compute S3 multipart checksums for a local file."""

    def __init__(
        self,
        file_path: str,
        *,
        part_size: int,
        threads: int = DEFAULT_THREADS,
        hash_fun: str | Callable | None = None,
    ):
        """
        Validate the inputs and plan the parts.

        Args:
            file_path: Path to an existing regular file
            part_size: Size of each part in bytes (at least 5 MiB)
            threads: Maximum number of parts hashed at the same time
            hash_fun: Algorithm name or hash constructor for part checksums

        Raises:
            ConfigError: If any input is invalid; nothing has been read yet
        """
        if not file_path:
            raise ConfigError("File path is required")
        if part_size < MIN_PART_SIZE:
            raise ConfigError(
                f"Part size must be at least {MIN_PART_SIZE} bytes, got {part_size}",
                part_size=part_size,
            )
        if threads < 1:
            raise ConfigError(f"Thread limit must be positive, got {threads}", threads=threads)

        try:
            file_stat = os.stat(file_path)
        except OSError as exc:
            raise ConfigError(f"Cannot stat {file_path}: {exc}", file_path=file_path) from exc
        if not stat.S_ISREG(file_stat.st_mode):
            raise ConfigError(f"Not a regular file: {file_path}", file_path=file_path)
        if not os.access(file_path, os.R_OK):
            raise ConfigError(f"File is not readable: {file_path}", file_path=file_path)
        if file_stat.st_size == 0:
            raise ConfigError(f"File is empty: {file_path}", file_path=file_path)

        self.file_path = file_path
        self.file_size = file_stat.st_size
        self.part_size = part_size
        self.threads = threads
        self.hash_fun, self.algorithm = resolve_hash_function(hash_fun)
        self.parts = calculate_parts(self.file_size, part_size)
        self.number_of_parts = len(self.parts)

        self.buffer_pool = ResourcePool(lambda: bytearray(part_size))
        self.hash_pool = ResourcePool(lambda: HashState(self.hash_fun), reset_hash_state)
        self.md5_hash_pool = ResourcePool(lambda: HashState(hashlib.md5), reset_hash_state)

        logger.debug(
            "Planned %d parts of %d bytes for %s (%d bytes, %s)",
            self.number_of_parts,
            part_size,
            file_path,
            self.file_size,
            self.algorithm,
        )

    def part_range(self, index: int) -> PartRange:
        """Byte range [start, end) of the part at 0-based ``index``."""
        return self.parts[index]

    def _read_part(self, part: PartRange, view: memoryview) -> None:
        try:
            with open(self.file_path, "rb") as f:
                f.seek(part.start)
                filled = 0
                while filled < part.size:
                    n = f.readinto(view[filled:])
                    if not n:
                        break
                    filled += n
        except OSError as exc:
            raise ReadError(
                f"Error reading part {part.part_number}: {exc}",
                part_number=part.part_number,
            ) from exc

        if filled != part.size:
            raise ReadError(
                f"Short read on part {part.part_number}: got {filled} bytes instead of the expected {part.size}",
                part_number=part.part_number,
                expected=part.size,
                actual=filled,
            )

    def calculate_checksum_for_part(
        self, index: int, cancelled: threading.Event | None = None
    ) -> PartInfo:
        """
        Read one part and compute its checksum and MD5.

        Args:
            index: 0-based part index
            cancelled: Set by the orchestrator when another part failed

        Returns:
            PartInfo with a 1-based part number

        Raises:
            ReadError: If the part cannot be read in full
            ChecksumCancelled: If ``cancelled`` was set before the work finished
        """
        part = self.part_range(index)

        with self.buffer_pool.acquire() as buffer, memoryview(buffer) as whole:
            # A reused buffer may hold bytes from a longer part.
            view = whole[: part.size]
            try:
                if cancelled is not None and cancelled.is_set():
                    raise ChecksumCancelled(part.part_number)
                self._read_part(part, view)

                if cancelled is not None and cancelled.is_set():
                    raise ChecksumCancelled(part.part_number)
                with self.hash_pool.acquire() as h, self.md5_hash_pool.acquire() as md5:
                    h.update(view)
                    md5.update(view)
                    checksum = h.digest()
                    md5_checksum = md5.digest()
            finally:
                view.release()

        return PartInfo(
            part_number=part.part_number,
            size=part.size,
            algorithm=self.algorithm,
            checksum=checksum,
            md5_checksum=md5_checksum,
        )

    async def _run_part(
        self,
        index: int,
        semaphore: asyncio.Semaphore,
        executor: ThreadPoolExecutor,
        results: asyncio.Queue,
        cancelled: threading.Event,
        monitor: ProgressMonitor | None,
    ) -> None:
        loop = asyncio.get_running_loop()
        async with semaphore:
            try:
                part_info = await loop.run_in_executor(
                    executor, self.calculate_checksum_for_part, index, cancelled
                )
            except (ChecksumError, ChecksumCancelled):
                cancelled.set()
                raise
            except Exception as exc:
                cancelled.set()
                raise ChecksumError(
                    f"Error hashing part {index + 1}: {exc}", part_number=index + 1
                ) from exc
            except BaseException:
                cancelled.set()
                raise
        # The slot is free before the result is published.
        await results.put(part_info)
        if monitor is not None:
            await monitor.part_completed(part_info.size)

    async def calculate_checksum(self, monitor: ProgressMonitor | None = None) -> AggregateResult:
        """
        Hash all parts with at most ``threads`` in flight and aggregate them.

        The first failing part cancels the rest; in-flight workers stop at
        their next check, every worker thread is joined and a single
        ChecksumError (a ReadError for I/O failures) naming the failing part
        is raised.

        Args:
            monitor: Optional progress monitor notified per finished part

        Returns:
            AggregateResult with parts sorted by part number
        """
        semaphore = asyncio.Semaphore(self.threads)
        results: asyncio.Queue = asyncio.Queue()
        cancelled = threading.Event()

        if monitor is not None:
            monitor.start()

        executor = ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="part-worker")
        try:
            async with asyncio.TaskGroup() as tg:
                for index in range(self.number_of_parts):
                    tg.create_task(
                        self._run_part(index, semaphore, executor, results, cancelled, monitor)
                    )
        except BaseExceptionGroup as eg:
            part_errors, _ = eg.split(ChecksumError)
            if part_errors is None:
                raise
            failures = sorted(part_errors.exceptions, key=lambda exc: exc.part_number)
            for failure in failures:
                logger.error("Part %d failed: %s", failure.part_number, failure.message)
            raise failures[0]
        finally:
            # Join every worker thread so their pooled resources are back,
            # without blocking the event loop while in-flight parts finish.
            await asyncio.to_thread(executor.shutdown, wait=True, cancel_futures=True)
            if monitor is not None:
                monitor.finish()

        part_list = []
        while not results.empty():
            part_list.append(results.get_nowait())

        if len(part_list) != self.number_of_parts:
            raise AggregationError(
                f"Expected {self.number_of_parts} parts, collected {len(part_list)}",
                filename=self.file_path,
            )
        part_list.sort(key=lambda part: part.part_number)

        return aggregate_parts(
            part_list,
            self.hash_fun,
            filename=self.file_path,
            part_size=self.part_size,
            algorithm=self.algorithm,
        )

    def calculate_checksum_sync(self, monitor: ProgressMonitor | None = None) -> AggregateResult:
        return asyncio.run(self.calculate_checksum(monitor))
