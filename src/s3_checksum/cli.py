from s3_checksum.constants import MODE_CHECKSUM, MODE_UPLOAD, MODE_VERIFY
from s3_checksum.logging_config import setup_logging
from s3_checksum.main import (
    create_s3_client,
    print_results,
    run_checksum,
    run_upload,
    run_verify,
)
from s3_checksum.manifest import save_manifest
from s3_checksum.parsing import parse_arguments


async def cli(argv=None):
    """Main entry point for the checksum tool."""
    args = parse_arguments(argv)
    setup_logging("DEBUG" if args.debug else None)

    if args.mode == MODE_CHECKSUM:
        await checksum(args)
    elif args.mode == MODE_UPLOAD:
        await run_upload(args, create_s3_client(args))
    elif args.mode == MODE_VERIFY:
        s3_client = create_s3_client(args) if args.s3_uri else None
        await run_verify(args, s3_client)


async def checksum(args):
    """Compute, print and record the checksums of a local file."""
    result = await run_checksum(args)
    print_results(result, hex_output=args.print_hex)

    if args.manifest:
        save_manifest(args.manifest, [result], hex_output=args.print_hex)
