"""Secrets file loading and merging with the calling environment.

The file is a plain ``KEY=value`` list. Lines that are blank or start with
``#`` are skipped. Each remaining line is split on the first ``=``; the key
is trimmed (an optional leading ``export`` is dropped) and the value is
kept verbatim so intentional trailing content survives. Quotes are *not*
interpreted; ``KEY="x"`` binds the three characters ``"x"``.

The result is an explicit :class:`EnvConfig`; nothing is written into
``os.environ``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from openclaw_pod.errors import ConfigError
from openclaw_pod.logger import logger

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_env_lines(text: str, *, source: str = "<string>") -> dict[str, str]:
    """Parse ``KEY=value`` lines into an ordered mapping (later keys win)."""
    values: dict[str, str] = {}
    # Only \n ends a line; other Unicode separators belong to the value
    for lineno, raw in enumerate(text.split("\n"), start=1):
        line = raw.removesuffix("\r")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        if not _KEY_RE.match(key):
            logger.warning("Skipping invalid env file line", source=source, line=lineno)
            continue
        values[key] = value
    return values


def load_env_file(path: Path, *, required: bool = False) -> dict[str, str]:
    """Read *path* and return its key/value pairs.

    A missing file yields ``{}`` unless *required*. A file that exists but
    cannot be read always raises :class:`ConfigError`.
    """
    if not path.exists():
        if required:
            raise ConfigError(f"Env file {path} does not exist")
        logger.debug("No env file, using calling environment only", path=str(path))
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read env file {path}: {exc}") from exc
    values = parse_env_lines(text, source=str(path))
    logger.debug("Loaded env file", path=str(path), keys=len(values))
    return values


@dataclass(frozen=True)
class EnvConfig:
    """Effective configuration: file defaults overlaid by the calling environment.

    ``file_keys`` preserves the order in which the file declared its keys;
    these are the keys forwarded into the gateway container.
    """

    values: dict[str, str] = field(default_factory=dict)
    file_keys: tuple[str, ...] = ()
    source: Path | None = None

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def file_environment(self) -> dict[str, str]:
        """File-declared keys with their effective (possibly exported) values."""
        return {k: self.values[k] for k in self.file_keys}


def build_env_config(
    path: Path,
    environ: Mapping[str, str] | None = None,
    *,
    required: bool = False,
) -> EnvConfig:
    """Merge *path* under *environ*; an exported variable is never overridden."""
    if environ is None:
        environ = os.environ
    file_values = load_env_file(path, required=required)
    merged = dict(file_values)
    for key in file_values:
        if key in environ:
            merged[key] = environ[key]
    for key, value in environ.items():
        merged.setdefault(key, value)
    return EnvConfig(values=merged, file_keys=tuple(file_values), source=path)
