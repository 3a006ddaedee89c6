"""Shared fixtures and test configuration."""

import random
from pathlib import Path
from typing import Callable

import boto3
import pytest

from s3_checksum.utils import get_s3_client

MIB = 1024 * 1024


@pytest.fixture
def make_file(tmp_path) -> Callable[..., Path]:
    """
    Factory writing a file of ``size`` pseudo-random bytes.

    The same ``seed`` always produces the same content, so tests can compare
    digests against hashlib over the bytes they get back from ``read_bytes``.
    """

    def _make_file(size: int, name: str = "data.bin", seed: int = 42) -> Path:
        path = tmp_path / name
        path.write_bytes(random.Random(seed).randbytes(size))
        return path

    return _make_file


@pytest.fixture
def s3_client():
    """S3 client with dummy credentials; wrap it in a Stubber before use."""
    session = boto3.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    )
    return get_s3_client(session, region="us-east-1")
