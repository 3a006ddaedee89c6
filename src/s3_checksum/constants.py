# Constants
MIN_PART_SIZE = 5 * 1024 * 1024  # 5 MiB, the S3 multipart minimum
DEFAULT_PART_SIZE = 64 * 1024 * 1024  # 64 MiB
DEFAULT_THREADS = 16
DEFAULT_REGION = "us-west-2"
DEFAULT_MANIFEST = "manifest.json"

# Hash algorithms S3 can compose from per-part checksums
DEFAULT_ALGORITHM = "sha256"
SUPPORTED_ALGORITHMS = {
    "sha256": "SHA256",
    "sha1": "SHA1",
}

# Operation modes
MODE_CHECKSUM = "checksum"
MODE_UPLOAD = "upload"
MODE_VERIFY = "verify"
