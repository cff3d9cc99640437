"""ZIP export of a folder subtree."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable, Sequence

from localdrive.utils.paths import SEPARATOR, encode

logger = logging.getLogger(__name__)


def build_zip(
    files: Iterable[tuple[Sequence[str], str, bytes | None]],
    directories: Iterable[Sequence[str]] = (),
) -> bytes:
    """Bundle ``(relative_dir, name, content)`` tuples into a ZIP archive.

    Files without content are skipped but still count as directory contents.
    Each directory in ``directories`` that holds no file directly gets an
    empty placeholder entry.
    """
    buffer = io.BytesIO()
    populated: set[str] = set()
    skipped = 0

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for rel_dir, name, content in files:
            populated.add(encode(rel_dir))
            if content is None:
                skipped += 1
                continue
            arcname = encode([*rel_dir, name])
            zf.writestr(arcname, content)

        for rel_dir in directories:
            key = encode(rel_dir)
            if key and key not in populated:
                zf.writestr(key + SEPARATOR, b"")

    if skipped:
        logger.warning("Archive skipped %d file(s) without content", skipped)
    return buffer.getvalue()
