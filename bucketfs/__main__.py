"""bucketfs command line (testing only).

Usage:
    python -m bucketfs ls reports/
    python -m bucketfs put reports/q1.csv ./q1.csv
    python -m bucketfs get reports/q1.csv ./q1-copy.csv
"""
import argparse
import asyncio
import sys
import uuid

import aiofiles

from bucketfs import __version__
from bucketfs.file_access.errors import StorageError
from bucketfs.file_access.factory import build_backend
from bucketfs.monitoring.context import request_context


def _format_entry(path: str, metadata) -> str:
    kind = "d" if metadata.is_dir else "-"
    modified = metadata.modified.isoformat() if metadata.modified else "-"
    return f"{kind} {metadata.size:>12} {modified:>32} {path}"


async def _run(backend, args) -> int:
    if args.action == "ls":
        async for entry in backend.list(args.remote_path):
            print(_format_entry(entry.path, entry.metadata))
    elif args.action == "stat":
        print(_format_entry(args.remote_path, await backend.stat(args.remote_path)))
    elif args.action == "get":
        reader = await backend.get(args.remote_path)
        if args.target:
            async with aiofiles.open(args.target, "wb") as fh:
                await fh.write(reader.readall())
        else:
            sys.stdout.buffer.write(reader.readall())
    elif args.action == "put":
        if not args.target:
            raise SystemExit("put requires a local file")
        async with aiofiles.open(args.target, "rb") as fh:
            size = await backend.put(args.remote_path, fh)
        print(f"uploaded {size} bytes")
    elif args.action == "rm":
        await backend.delete(args.remote_path)
    elif args.action == "mkdir":
        await backend.mkd(args.remote_path)
    elif args.action == "rmdir":
        await backend.rmd(args.remote_path)
    elif args.action == "mv":
        if not args.target:
            raise SystemExit("mv requires a destination path")
        await backend.rename(args.remote_path, args.target)
    elif args.action == "health":
        result = await backend.health_check()
        print(result.message)
        return 0 if result.healthy else 1
    return 0


async def main_cli(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="bucketfs", description="bucketfs client CLI (testing only)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--bucket", default=None, help="overrides GCS_BUCKET")
    parser.add_argument("action", choices=["ls", "stat", "get", "put", "rm", "mkdir", "rmdir", "mv", "health"])
    parser.add_argument("remote_path", nargs="?", default="")
    parser.add_argument("target", nargs="?", default=None,
                        help="local file for get/put, destination path for mv")
    args = parser.parse_args(argv)

    with request_context(session_id=f"cli-{uuid.uuid4().hex[:8]}"):
        async with build_backend(bucket=args.bucket) as backend:
            try:
                return await _run(backend, args)
            except StorageError as exc:
                print(f"error [{exc.kind.value}]: {exc}", file=sys.stderr)
                return 1


def main() -> None:
    sys.exit(asyncio.run(main_cli()))


if __name__ == "__main__":
    main()
