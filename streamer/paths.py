"""Expand configured path patterns into the concrete files to tail."""

import glob
import logging
import os
from dataclasses import dataclass

from streamer.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathSpec:
    path: str
    prefix: str = ""   # overrides the global prefix when set


def resolve_paths(path_configs) -> list[PathSpec]:
    """Glob every configured pattern, in order, into PathSpecs.

    A pattern that matches nothing is fatal. A file matched by more than one
    pattern is tailed once, with the prefix of the first pattern that matched.
    """
    specs: list[PathSpec] = []
    seen: set[str] = set()
    for pc in path_configs:
        matches = sorted(glob.glob(pc.path))
        if not matches:
            raise ConfigError(f"'{pc.path}' didn't match any files")
        for match in matches:
            abs_path = os.path.abspath(match)
            if os.path.isdir(abs_path):
                logger.debug("Skipping directory %s matched by '%s'", abs_path, pc.path)
                continue
            if abs_path in seen:
                continue
            seen.add(abs_path)
            specs.append(PathSpec(path=abs_path, prefix=pc.prefix))
    if not specs:
        raise ConfigError("configured paths resolved to no files")
    return specs
