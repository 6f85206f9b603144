"""Host directory provisioning for the pod's persistent mounts."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from openclaw_pod.errors import FilesystemError
from openclaw_pod.logger import logger
from openclaw_pod.types import StepResult

OWNER_ONLY = 0o700


def ensure_directory(path: Path, mode: int = OWNER_ONLY) -> StepResult:
    """Create *path* (and parents) then restrict it to *mode*.

    Creation failure is fatal. A failed chmod only degrades the result; the
    directory is still mountable, just not hardened.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(str(path), exc.strerror or str(exc)) from exc

    try:
        path.chmod(mode)
    except OSError as exc:
        logger.warning(
            "Could not restrict directory permissions (non-fatal)",
            path=str(path),
            mode=oct(mode),
            err=str(exc),
        )
        return StepResult("degraded", f"chmod {oct(mode)} failed: {exc}")
    return StepResult()


def ensure_directories(paths: Iterable[Path], mode: int = OWNER_ONLY) -> dict[Path, StepResult]:
    results = {path: ensure_directory(path, mode) for path in paths}
    degraded = [str(p) for p, r in results.items() if r.degraded]
    logger.debug("Host directories ready", count=len(results), degraded=degraded)
    return results
