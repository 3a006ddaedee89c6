"""Tests for comparing local results with S3 and manifests."""

import base64
import hashlib

import pytest
from botocore.stub import Stubber

from s3_checksum.checksum import MultipartFile
from s3_checksum.errors import TransferError
from s3_checksum.structs import ObjectAttributes
from s3_checksum.verify import ObjectInspector, compare_with_manifest, compare_with_remote

MIB = 1024 * 1024
ATTRIBUTES = ["ETag", "Checksum", "ObjectParts", "ObjectSize"]


@pytest.fixture
def local(make_file):
    path = make_file(12 * MIB)
    return MultipartFile(str(path), part_size=5 * MIB, threads=2).calculate_checksum_sync()


def remote_for(local, **overrides) -> ObjectAttributes:
    values = dict(
        bucket="bucket",
        key="data.bin",
        size=local.file_size,
        etag=local.etag,
        checksum=local.checksum,
        algorithm=local.algorithm,
        part_count=local.part_count,
    )
    values.update(overrides)
    return ObjectAttributes(**values)


class TestObjectInspector:
    """Tests for reading object attributes from S3."""

    def test_multipart_object(self, s3_client, local):
        checksum = base64.b64encode(local.checksum).decode()
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object_attributes",
                {
                    "ETag": f"{local.etag.hex()}-3",
                    "Checksum": {"ChecksumSHA256": f"{checksum}-3"},
                    "ObjectParts": {"TotalPartsCount": 3},
                    "ObjectSize": local.file_size,
                },
                {"Bucket": "bucket", "Key": "data.bin", "ObjectAttributes": ATTRIBUTES},
            )

            remote = ObjectInspector(s3_client).get_attributes("bucket", "data.bin")

        assert remote.etag == local.etag
        assert remote.checksum == local.checksum
        assert remote.algorithm == "sha256"
        assert remote.part_count == 3
        assert compare_with_remote(local, remote) == []

    def test_object_without_checksum(self, s3_client):
        etag = hashlib.md5(b"small").hexdigest()
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object_attributes",
                {"ETag": etag, "ObjectSize": 5},
                {"Bucket": "bucket", "Key": "small", "ObjectAttributes": ATTRIBUTES},
            )

            remote = ObjectInspector(s3_client).get_attributes("bucket", "small")

        assert remote.checksum is None
        assert remote.part_count == 1
        assert remote.etag == hashlib.md5(b"small").digest()

    def test_client_error(self, s3_client):
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("get_object_attributes", "NoSuchKey", http_status_code=404)

            with pytest.raises(TransferError, match="s3://bucket/missing"):
                ObjectInspector(s3_client).get_attributes("bucket", "missing")

    def test_unparseable_etag(self, s3_client):
        """An S3-compatible server returning a non-hex ETag is a transfer failure."""
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object_attributes",
                {"ETag": "not-hex", "ObjectSize": 5},
                {"Bucket": "bucket", "Key": "odd", "ObjectAttributes": ATTRIBUTES},
            )

            with pytest.raises(TransferError, match="Invalid ETag") as excinfo:
                ObjectInspector(s3_client).get_attributes("bucket", "odd")

        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_unparseable_checksum(self, s3_client):
        etag = hashlib.md5(b"small").hexdigest()
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object_attributes",
                {"ETag": etag, "Checksum": {"ChecksumSHA256": "***"}, "ObjectSize": 5},
                {"Bucket": "bucket", "Key": "odd", "ObjectAttributes": ATTRIBUTES},
            )

            with pytest.raises(TransferError, match="Invalid checksum"):
                ObjectInspector(s3_client).get_attributes("bucket", "odd")


class TestCompareWithRemote:
    """Tests for compare_with_remote."""

    def test_match(self, local):
        assert compare_with_remote(local, remote_for(local)) == []

    def test_etag_mismatch(self, local):
        mismatches = compare_with_remote(local, remote_for(local, etag=b"\x00" * 16))
        assert len(mismatches) == 1
        assert mismatches[0].startswith("etag")

    def test_part_count_mismatch(self, local):
        mismatches = compare_with_remote(local, remote_for(local, part_count=2))
        assert any(m.startswith("part count") for m in mismatches)

    def test_checksum_ignored_for_other_algorithm(self, local):
        remote = remote_for(local, checksum=b"\x01" * 20, algorithm="sha1")
        assert compare_with_remote(local, remote) == []

    def test_checksum_mismatch(self, local):
        mismatches = compare_with_remote(local, remote_for(local, checksum=b"\x01" * 32))
        assert mismatches and mismatches[0].startswith("checksum")


class TestCompareWithManifest:
    """Tests for compare_with_manifest."""

    def test_match(self, local):
        assert compare_with_manifest(local, local) == []

    def test_changed_part(self, local):
        changed_part = local.part_list[1]._replace(checksum=b"\x00" * 32)
        recorded = local._replace(
            part_list=[local.part_list[0], changed_part, local.part_list[2]],
            checksum=b"\x00" * 32,
        )

        mismatches = compare_with_manifest(local, recorded)

        assert "part 2 differs" in mismatches
        assert "checksum differs" in mismatches

    def test_different_part_size(self, local):
        recorded = local._replace(part_size=8 * MIB)
        assert compare_with_manifest(local, recorded)[0].startswith("part size")
