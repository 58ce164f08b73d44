"""Lockfile persistence helpers for callers.

The resolver never touches storage; these helpers let a caller read the
previous lockfile and persist a new one atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Optional, Union

from constants import Constants

from .model import Lockfile

logger = logging.getLogger(__name__)


def lockfile_path(directory: str = ".") -> str:
    """Conventional lockfile location next to the manifest in ``directory``."""
    return os.path.join(directory, Constants.LOCKFILE_NAME)


def read_lockfile(path: str) -> Optional[Lockfile]:
    """Parse the lockfile at ``path``; None when the file does not exist.

    Raises:
        LockfileParseError: The file exists but is malformed.
    """
    if not os.path.isfile(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return Lockfile.parse(f.read())


def write_lockfile(path: str, lockfile: Union[Lockfile, str]) -> None:
    """Write ``lockfile`` to ``path`` via a temporary file and rename.

    Readers see either the old content or the new content, never a mix.
    """
    content = lockfile if isinstance(lockfile, str) else lockfile.serialize()
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".lock-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    logger.debug("Wrote lockfile %s", path)
