"""Tests for the command line interface."""

import pytest

from s3_checksum import main
from s3_checksum.manifest import read_manifest
from s3_checksum.parsing import parse_arguments, parse_s3_uri

MIB = 1024 * 1024


class TestParsing:
    """Tests for argument parsing."""

    def test_checksum_defaults(self):
        args = parse_arguments(["checksum", "--file", "data.bin"])

        assert args.part_size_bytes == 64 * MIB
        assert args.threads == 16
        assert args.algorithm == "sha256"
        assert args.manifest == "manifest.json"
        assert args.print_hex is False

    def test_rejects_non_positive_threads(self):
        with pytest.raises(SystemExit):
            parse_arguments(["checksum", "--file", "data.bin", "--threads", "0"])

    def test_verify_requires_one_reference(self):
        with pytest.raises(SystemExit):
            parse_arguments(["verify", "--file", "data.bin"])

    def test_verify_s3_uri(self):
        args = parse_arguments(["verify", "--file", "data.bin", "--s3-uri", "s3://bucket/path/to/key"])

        assert args.bucket == "bucket"
        assert args.key == "path/to/key"

    def test_parse_s3_uri_invalid(self):
        with pytest.raises(ValueError, match="Invalid S3 URI"):
            parse_s3_uri("https://bucket/key")


class TestChecksumCommand:
    """Tests for the checksum and verify subcommands."""

    def test_prints_parts_and_aggregates(self, make_file, tmp_path, capsys):
        path = make_file(17 * MIB)
        manifest = tmp_path / "out.json"

        main(["checksum", "--file", str(path), "--part-size", "5MB", "--manifest", str(manifest), "--print-hex"])

        out = capsys.readouterr().out
        result = read_manifest(manifest)[0]
        assert out.count("Part: ") == 4
        assert "Part: 00004" in out
        assert f"Amazon S3 SHA256:\t{result.checksum.hex()}-4" in out
        assert f"Amazon S3 Etag:\t{result.etag.hex()}-4" in out

    def test_config_error_exits(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["checksum", "--file", str(tmp_path / "missing.bin"), "--manifest", ""])

        assert excinfo.value.code == 1
        assert "Cannot stat" in capsys.readouterr().err

    def test_verify_against_manifest(self, make_file, tmp_path, capsys):
        path = make_file(11 * MIB)
        manifest = tmp_path / "out.json"
        main(["checksum", "--file", str(path), "--part-size", "5MB", "--manifest", str(manifest)])
        capsys.readouterr()

        main(["verify", "--file", str(path), "--part-size", "5MB", "--manifest", str(manifest)])
        assert "OK:" in capsys.readouterr().out

        data = bytearray(path.read_bytes())
        data[-1] ^= 0xFF
        path.write_bytes(bytes(data))

        with pytest.raises(SystemExit) as excinfo:
            main(["verify", "--file", str(path), "--part-size", "5MB", "--manifest", str(manifest)])

        captured = capsys.readouterr()
        assert excinfo.value.code == 1
        assert "MISMATCH part 3 differs" in captured.out
        assert "does not match" in captured.err
