"""Site backup client package.

This package downloads a full site export from a comment-engine server's
admin API (``GET /api/v1/admin/export?mode=file&site=<site>``) and stores
it in a local file named from a template.

Example Usage:
    # Command line
    ADMIN_PASSWD=secret site-backup --url https://remark.example.com --site remark

    # From Python
    from datetime import datetime
    from site_backup import ExportRequest, fetch, resolve

    destination = resolve(
        "userbackup-{{.SITE}}-{{.TS}}.gz",
        "remark",
        datetime.now(),
        "./var/backup",
    )
    request = ExportRequest(
        site="remark",
        base_url="https://remark.example.com",
        credential="secret",
        timeout=60,
    )
    result = await fetch(request, destination)
    print(f"{result.size} bytes written to {result.path}")
"""

from ._version import __version__, __version_info__
from .exceptions import (
    BackupException,
    TemplateResolutionError,
    RequestConstructionError,
    TransportError,
    ExportTimeoutError,
    RemoteRejectionError,
    LocalIOError,
)
from .types import (
    ExportRequest,
    ExportResult,
    DEFAULT_BACKUP_PATH,
    DEFAULT_FILE_TEMPLATE,
    DEFAULT_SITE,
    DEFAULT_TIMEOUT,
)
from .filename import FilenameTemplate, format_timestamp, resolve
from .client import ExportClient, fetch

__all__ = [
    # Version
    '__version__',
    '__version_info__',

    # Main API
    'ExportClient',
    'FilenameTemplate',
    'fetch',
    'resolve',
    'format_timestamp',

    # Exceptions
    'BackupException',
    'TemplateResolutionError',
    'RequestConstructionError',
    'TransportError',
    'ExportTimeoutError',
    'RemoteRejectionError',
    'LocalIOError',

    # Types
    'ExportRequest',
    'ExportResult',

    # Constants
    'DEFAULT_BACKUP_PATH',
    'DEFAULT_FILE_TEMPLATE',
    'DEFAULT_SITE',
    'DEFAULT_TIMEOUT',
]
