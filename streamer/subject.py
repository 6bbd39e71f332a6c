"""Derive NATS subject names from file paths."""

import os
import re

_PREFIX_UNSAFE = re.compile(r"[^A-Za-z0-9.\-]")
# Dots are token separators in a subject, so a file name must not add tokens.
_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9\-]")


def sanitize(value: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.-]`` with ``_``."""
    return _PREFIX_UNSAFE.sub("_", value)


def subject_for(prefix: str, path: str, separator: str = ".") -> str:
    """Build the subject a file's lines are published under.

    >>> subject_for("app", "/var/log/app/error!.log")
    'app.error__log'
    >>> subject_for("", "/tmp/a.log")
    'a_log'
    """
    name = _NAME_UNSAFE.sub("_", os.path.basename(path))
    if not prefix:
        return name
    return sanitize(prefix + separator) + name
