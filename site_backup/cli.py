"""Command-line entry point: ``site-backup`` / ``python -m site_backup``.

Usage:
    site-backup --url https://remark.example.com --site remark
    ADMIN_PASSWD=secret BACKUP_PATH=/srv/backup site-backup --url https://remark.example.com

Security note:
    Prefer ADMIN_PASSWD over --admin-passwd, command lines end up in shell
    history and process listings. ADMIN_PASSWD and SECRET are removed from
    the environment as soon as they have been read.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import math
import os
import re
import sys
from datetime import datetime, timezone
from typing import List, Optional

from ._version import __version__
from .client import fetch
from .exceptions import BackupException, LocalIOError
from .filename import resolve
from .types import (
    DEFAULT_BACKUP_PATH,
    DEFAULT_FILE_TEMPLATE,
    DEFAULT_SITE,
    ExportRequest,
    ExportResult,
)

DEFAULT_TIMEOUT_ARG = "15m"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

log = logging.getLogger(__name__)


def parse_duration(value: str) -> float:
    """Parse a duration like ``15m``, ``1h30m``, ``500ms`` or ``90`` into seconds.

    Raises:
        argparse.ArgumentTypeError: If the value isn't a positive duration
    """
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for m in _DURATION_RE.finditer(text):
            if m.start() != pos:
                break
            seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
            pos = m.end()
        if pos == 0 or pos != len(text):
            raise argparse.ArgumentTypeError(f"invalid duration {value!r}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive, got {value!r}")
    return seconds


def reset_env(*keys: str) -> None:
    """Remove secrets from the process environment so child processes don't inherit them."""
    for key in keys:
        os.environ.pop(key, None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="site-backup",
        description="Export a site from the server into a local backup file.",
    )
    parser.add_argument("-p", "--path", default=os.environ.get("BACKUP_PATH", DEFAULT_BACKUP_PATH),
                        help="export path [$BACKUP_PATH] (default: %(default)s)")
    parser.add_argument("-f", "--file", default=DEFAULT_FILE_TEMPLATE,
                        help="file name, a path in it overrides --path (default: %(default)s)")
    parser.add_argument("-s", "--site", default=os.environ.get("SITE", DEFAULT_SITE),
                        help="site name [$SITE] (default: %(default)s)")
    parser.add_argument("--url", default=os.environ.get("REMARK_URL"),
                        help="url of the server [$REMARK_URL]")
    parser.add_argument("--timeout", type=parse_duration, default=parse_duration(DEFAULT_TIMEOUT_ARG),
                        help=f"export (backup) timeout, e.g. 90s, 15m, 1h (default: {DEFAULT_TIMEOUT_ARG})")
    parser.add_argument("--admin-passwd", default=os.environ.get("ADMIN_PASSWD"),
                        help="admin basic auth password [$ADMIN_PASSWD]")
    parser.add_argument("--insecure", action="store_true",
                        help="skip TLS certificate verification (development only)")
    parser.add_argument("--dbg", action="store_true", help="debug mode")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.url:
        parser.error("the server url is required, use --url or $REMARK_URL")
    if not args.admin_passwd:
        parser.error("the admin password is required, use --admin-passwd or $ADMIN_PASSWD")
    return args


def _ensure_backup_dir(destination: str, path: str) -> None:
    # only the configured export path is created, an explicit path in --file is used as is
    if not path or os.path.dirname(destination) != os.path.normpath(path):
        return
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise LocalIOError(f"can't create backup directory {path}: {e}", path=path) from e


async def backup(args: argparse.Namespace, now: Optional[datetime] = None) -> ExportResult:
    """Run the export described by parsed command-line ``args``.

    ``now`` is sampled once here and used for the whole run.
    """
    log.info(f"export to {args.path}, site {args.site}")
    if now is None:
        now = datetime.now(timezone.utc)

    destination = resolve(args.file, args.site, now, args.path)
    log.debug(f"export file {destination}")
    _ensure_backup_dir(destination, args.path)

    request = ExportRequest(site=args.site, base_url=args.url, credential=args.admin_passwd,
                            timeout=args.timeout)
    result = await fetch(request, destination, ssl=False if args.insecure else None)
    log.info(f"export completed, file {result.path}")
    return result


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one export and return the process exit status."""
    args = parse_args(argv)
    reset_env("SECRET", "ADMIN_PASSWD")

    logging.basicConfig(level=logging.DEBUG if args.dbg else logging.INFO, format=LOG_FORMAT)

    try:
        asyncio.run(backup(args))
    except BackupException as e:
        log.error(f"export failed: {e}")
        return 1
    return 0


def run() -> None:
    sys.exit(main())
