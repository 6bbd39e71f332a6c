"""Wrap a raw log line with origin metadata and serialize it."""

import json

from streamer.errors import EncodeError

FILEPATH_FIELD = "@filepath"
HOSTNAME_FIELD = "@hostname"
MSG_FIELD = "@msg"


def build_payload(filepath: str, hostname: str, line: str) -> dict:
    return {
        FILEPATH_FIELD: filepath,
        HOSTNAME_FIELD: hostname,
        MSG_FIELD: line,
    }


def encode(filepath: str, hostname: str, line: str) -> bytes:
    """Serialize a payload to compact UTF-8 JSON.

    Raises EncodeError if any field cannot be represented as JSON.
    """
    payload = build_payload(filepath, hostname, line)
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError, UnicodeEncodeError) as e:
        raise EncodeError(f"cannot encode line from {filepath}: {e}") from e
