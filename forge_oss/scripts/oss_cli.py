#!/usr/bin/env python3
"""
OSS CLI for forge-oss

Command-line tool for moving files in and out of OSS buckets.

Usage:
    python -m forge_oss.scripts.oss_cli upload ./model.rvt my-bucket model.rvt
    python -m forge_oss.scripts.oss_cli download my-bucket model.rvt ./model.rvt
    python -m forge_oss.scripts.oss_cli list-objects my-bucket --begins-with model
    python -m forge_oss.scripts.oss_cli list-buckets --region EMEA
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any
from typing import List
from typing import Optional

from forge_oss.auth import StaticTokenAuthenticator
from forge_oss.config import Region
from forge_oss.config import get_config
from forge_oss.errors import OSSError
from forge_oss.logging_config import PLAIN_LOG_FORMAT
from forge_oss.logging_config import setup_logging
from forge_oss.models import dump
from forge_oss.services.oss_api_service import OssApiClient


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="forge-oss", description="Upload, download and list OSS objects")
    parser.add_argument("--token", help="Use this bearer token instead of the two-legged client credentials flow")

    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a file through signed S3 URLs")
    upload.add_argument("file", type=Path)
    upload.add_argument("bucket")
    upload.add_argument("object")
    upload.add_argument("--content-type", default="application/octet-stream")

    download = subparsers.add_parser("download", help="Download an object through a signed S3 URL")
    download.add_argument("bucket")
    download.add_argument("object")
    download.add_argument("output", type=Path)

    list_objects = subparsers.add_parser("list-objects", help="List the objects of a bucket")
    list_objects.add_argument("bucket")
    list_objects.add_argument("--limit", type=int)
    list_objects.add_argument("--begins-with")
    list_objects.add_argument("--start-at")

    list_buckets = subparsers.add_parser("list-buckets", help="List the application's buckets")
    list_buckets.add_argument("--region", type=Region, choices=list(Region))
    list_buckets.add_argument("--limit", type=int)
    list_buckets.add_argument("--start-at")

    return parser


async def run(args: argparse.Namespace, client: OssApiClient) -> Any:
    if args.command == "upload":
        return dump(await client.upload_object(args.bucket, args.object, args.file, content_type=args.content_type))

    if args.command == "download":
        data = await client.download_object(args.bucket, args.object)
        await asyncio.to_thread(args.output.write_bytes, data)
        return {"bucketKey": args.bucket, "objectKey": args.object, "size": len(data), "path": str(args.output)}

    if args.command == "list-objects":
        return dump(
            await client.list_objects(
                args.bucket, limit=args.limit, begins_with=args.begins_with, start_at=args.start_at
            )
        )

    if args.command == "list-buckets":
        return dump(await client.list_buckets(region=args.region, limit=args.limit, start_at=args.start_at))

    raise ValueError(f"Unknown command {args.command}")


async def amain(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = get_config()
    except ValueError as e:
        # Logging is configured from the config, so fall back to a plain stderr handler
        logging.basicConfig(level=logging.INFO, format=PLAIN_LOG_FORMAT)
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(config, "forge-oss-cli")

    authenticator = StaticTokenAuthenticator(args.token) if args.token else None
    async with OssApiClient(config, authenticator=authenticator) as client:
        try:
            result = await run(args, client)
        except OSSError as e:
            logger.error(f"{args.command} failed: {e}")
            return 1

    print(json.dumps(result, indent=2))
    return 0


def main() -> None:
    sys.exit(asyncio.run(amain()))


if __name__ == "__main__":
    main()
