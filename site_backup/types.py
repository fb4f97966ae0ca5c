"""Value types shared across the site_backup package.

Both types are created once per run and never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, field

ADMIN_USER = "admin"
EXPORT_ENDPOINT = "/api/v1/admin/export"

DEFAULT_BACKUP_PATH = "./var/backup"
DEFAULT_FILE_TEMPLATE = "userbackup-{{.SITE}}-{{.TS}}.gz"
DEFAULT_SITE = "remark"
DEFAULT_TIMEOUT = 15 * 60.0  # seconds


@dataclass(frozen=True)
class ExportRequest:
    """Everything needed to ask the server for one site export.

    ``credential`` is the admin basic-auth password. It is left out of
    ``repr()`` so the request can be logged safely.
    """
    site: str
    base_url: str
    credential: str = field(repr=False)
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.timeout is None or self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout!r}")


@dataclass(frozen=True)
class ExportResult:
    """A completed export: the file written and how many bytes it holds."""
    path: str
    size: int
    url: str = ""
    elapsed: float = 0.0
