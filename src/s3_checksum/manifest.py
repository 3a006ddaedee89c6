"""Manifest files recording part and aggregate checksums for later verification."""

import csv
import json
import logging
from pathlib import Path

from s3_checksum.errors import ManifestError
from s3_checksum.structs import AggregateResult, PartInfo
from s3_checksum.utils import format_aggregate, format_etag

logger = logging.getLogger(__name__)


def write_simple_manifest(path, results: list[AggregateResult], *, hex_output: bool = False) -> None:
    """
    Write a CSV manifest with one row per file and no per-part checksums.

    Columns: filename, part size, algorithm, checksum of checksums, ETag.
    Both aggregates are rendered the way S3 reports them.
    """
    rows = []
    for result in results:
        rows.append([
            result.filename,
            str(result.part_size),
            result.algorithm,
            format_aggregate(result.checksum, result.part_count, hex_output=hex_output),
            format_etag(result.etag, result.part_count),
        ])

    with open(path, "w", newline="", encoding="utf-8") as f:
        csv.writer(f).writerows(rows)


def _part_to_dict(part: PartInfo) -> dict:
    return {
        "part_number": part.part_number,
        "size": part.size,
        "algorithm": part.algorithm,
        "checksum": part.checksum.hex(),
        "md5_checksum": part.md5_checksum.hex(),
    }


def result_to_dict(result: AggregateResult) -> dict:
    return {
        "filename": result.filename,
        "part_size": result.part_size,
        "algorithm": result.algorithm,
        "checksum": result.checksum.hex(),
        "etag": result.etag.hex(),
        "part_list": [_part_to_dict(part) for part in result.part_list],
    }


def write_manifest(path, results: list[AggregateResult]) -> None:
    """Write a JSON manifest including every part's checksum and MD5 (hex)."""
    document = [result_to_dict(result) for result in results]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
        f.write("\n")


def _result_from_dict(entry: dict) -> AggregateResult:
    part_list = [
        PartInfo(
            part_number=int(part["part_number"]),
            size=int(part["size"]),
            algorithm=part["algorithm"],
            checksum=bytes.fromhex(part["checksum"]),
            md5_checksum=bytes.fromhex(part["md5_checksum"]),
        )
        for part in entry["part_list"]
    ]
    part_list.sort(key=lambda part: part.part_number)
    return AggregateResult(
        filename=entry["filename"],
        part_size=int(entry["part_size"]),
        part_list=part_list,
        checksum=bytes.fromhex(entry["checksum"]),
        etag=bytes.fromhex(entry["etag"]),
        algorithm=entry["algorithm"],
    )


def read_manifest(path) -> list[AggregateResult]:
    """
    Load a JSON manifest written by ``write_manifest``.

    Raises:
        ManifestError: If the file cannot be read or is malformed
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {path}: {exc}", path=str(path)) from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Manifest {path} is not valid JSON: {exc}", path=str(path)) from exc

    if not isinstance(document, list):
        raise ManifestError(f"Manifest {path} must contain a list of files", path=str(path))

    try:
        return [_result_from_dict(entry) for entry in document]
    except (KeyError, TypeError, ValueError) as exc:
        raise ManifestError(f"Malformed manifest entry in {path}: {exc}", path=str(path)) from exc


def save_manifest(path, results: list[AggregateResult], *, hex_output: bool = False) -> None:
    """Write ``results`` as CSV when ``path`` ends in .csv, JSON otherwise."""
    try:
        if Path(path).suffix.lower() == ".csv":
            write_simple_manifest(path, results, hex_output=hex_output)
        else:
            write_manifest(path, results)
    except OSError as exc:
        logger.error("Error writing manifest file %s: %s", path, exc)
        raise ManifestError(f"Cannot write manifest {path}: {exc}", path=str(path)) from exc
    logger.info("Wrote manifest %s", path)


def find_in_manifest(results: list[AggregateResult], filename: str) -> AggregateResult:
    """Pick the manifest entry for ``filename`` (exact path, then base name)."""
    for result in results:
        if result.filename == filename:
            return result
    name = Path(filename).name
    for result in results:
        if Path(result.filename).name == name:
            return result
    raise ManifestError(f"No manifest entry for {filename}", filename=filename)
