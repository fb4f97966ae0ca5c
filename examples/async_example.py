#!/usr/bin/env python3
"""
Example: Using the site_backup ExportClient from Python

Downloads a site export the same way the site-backup command does, but
with the pieces wired together by hand.

Usage:
    ADMIN_PASSWD=secret python async_example.py --url https://remark.example.com --site remark
"""

import argparse
import asyncio
import logging
import os
from datetime import datetime

from site_backup import BackupException, ExportClient, resolve


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
log = logging.getLogger(__name__)


async def main(base_url: str, site: str, password: str, path: str) -> int:
    destination = resolve("userbackup-{{.SITE}}-{{.TS}}.gz", site, datetime.now(), path)
    os.makedirs(path, exist_ok=True)

    async with ExportClient(base_url, timeout=300) as client:
        log.info(f"Export url: {client.export_url(site)}")
        try:
            result = await client.export(site, password, destination)
        except BackupException as e:
            log.error(f"Export failed: {e}")
            return 1

    log.info(f"✓ {result.size} bytes written to {result.path} in {result.elapsed:.1f}s")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="site_backup example")
    parser.add_argument("--url", required=True, help="server url")
    parser.add_argument("--site", default="remark", help="site name")
    parser.add_argument("--path", default="./var/backup", help="backup directory")
    args = parser.parse_args()

    password = os.environ.get("ADMIN_PASSWD")
    if not password:
        parser.error("set ADMIN_PASSWD")
    raise SystemExit(asyncio.run(main(args.url, args.site, password, args.path)))
