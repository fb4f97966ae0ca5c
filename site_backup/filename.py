"""Destination filename resolution.

Backup file names come from a small Go-style template, for example
``userbackup-{{.SITE}}-{{.TS}}.gz``. Two fields are known:

    SITE  the site identifier, verbatim
    TS    the run timestamp in UTC, ``%Y%m%dT%H%M%S`` (e.g. 20261019T113005)

If the rendered name contains a path separator it is used as the full
destination and the configured backup directory is ignored. Otherwise
the name is placed inside the backup directory.
"""
from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .exceptions import TemplateResolutionError

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
KNOWN_FIELDS = ("SITE", "TS")

_ACTION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_FIELD_RE = re.compile(r"^\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*$")

log = logging.getLogger(__name__)


def format_timestamp(now: datetime) -> str:
    """Render ``now`` the way the TS field does.

    Timezone-aware values are rendered in UTC so names keep sorting in run
    order across DST changes. Naive values are rendered as given.
    """
    if now.tzinfo is not None and now.utcoffset() is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


def _path_separators() -> Tuple[str, ...]:
    seps = {"/", os.sep}
    if os.altsep:
        seps.add(os.altsep)
    return tuple(seps)


def has_path_separator(name: str) -> bool:
    return any(sep in name for sep in _path_separators())


class FilenameTemplate:
    """A parsed filename template.

    Parsing happens in the constructor, so a bad template fails before any
    network traffic. Rendering is a single pass over the parsed parts:
    substituted values are never expanded again.

    Raises:
        TemplateResolutionError: on an unknown field or malformed action
    """

    def __init__(self, template: str):
        self.template = template
        self._parts: List[Tuple[str, Optional[str]]] = self._parse(template)

    @staticmethod
    def _parse(template: str) -> List[Tuple[str, Optional[str]]]:
        parts: List[Tuple[str, Optional[str]]] = []
        pos = 0
        for m in _ACTION_RE.finditer(template):
            literal = template[pos:m.start()]
            if "{{" in literal:
                raise TemplateResolutionError(f"malformed action in file template {template!r}")
            if literal:
                parts.append((literal, None))

            field = _FIELD_RE.match(m.group(1))
            if not field:
                raise TemplateResolutionError(
                    f"invalid action {m.group(0)!r} in file template {template!r}, "
                    f"expected one of {', '.join('{{.%s}}' % f for f in KNOWN_FIELDS)}"
                )
            name = field.group(1)
            if name not in KNOWN_FIELDS:
                raise TemplateResolutionError(f"unknown field {name!r} in file template {template!r}")
            parts.append(("", name))
            pos = m.end()

        tail = template[pos:]
        if "{{" in tail:
            raise TemplateResolutionError(f"unclosed action in file template {template!r}")
        if tail:
            parts.append((tail, None))
        return parts

    @property
    def placeholders(self) -> List[str]:
        return [name for _, name in self._parts if name is not None]

    def render(self, site: str, now: datetime) -> str:
        values: Dict[str, str] = {"SITE": site, "TS": format_timestamp(now)}
        return "".join(values[name] if name else literal for literal, name in self._parts)

    def __repr__(self) -> str:
        return f"FilenameTemplate({self.template!r})"


def resolve(template: str, site: str, now: datetime, base_dir: str = "") -> str:
    """Resolve a filename template into the destination path.

    Args:
        template: Filename template, e.g. ``userbackup-{{.SITE}}-{{.TS}}.gz``
        site: Site identifier substituted for SITE
        now: Run timestamp substituted for TS; sample it once per run
        base_dir: Backup directory, used only when the rendered name has
            no path separator

    Returns:
        The destination path

    Raises:
        TemplateResolutionError: If the template is malformed
    """
    rendered = FilenameTemplate(template).render(site, now)
    if has_path_separator(rendered):
        log.debug(f"file name {rendered} has a path, backup directory {base_dir!r} ignored")
        return rendered
    if not base_dir:
        return rendered
    return os.path.normpath(os.path.join(base_dir, rendered))
