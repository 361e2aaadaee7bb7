"""Project detection and language server health probing.

Both are synchronous helpers; API handlers run them in a worker thread.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from ..exception import NotFoundError, ProjectUnknownError
from .language import LanguageServerSpec

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 10


@dataclass(frozen=True)
class ProjectInfo:
    project_type: str
    root_path: str


def detect_project(path, manifests: Dict[str, str]) -> ProjectInfo:
    """
    Find the closest ancestor directory that holds a known manifest.

    The walk starts at ``path`` itself when it is a directory, otherwise
    at its parent, and stops at the filesystem root. Within one
    directory, manifests are tried in the order of ``manifests``.

    Args:
        path: File or directory inside a project
        manifests: Manifest file name -> language tag

    Returns:
        ProjectInfo for the first match

    Raises:
        NotFoundError: ``path`` does not exist
        ProjectUnknownError: No ancestor carries a known manifest
    """
    target = Path(path)
    if not target.exists():
        raise NotFoundError(f"Path does not exist: {path}")

    start = target if target.is_dir() else target.parent
    for directory in (start, *start.parents):
        for manifest, language in manifests.items():
            if (directory / manifest).is_file():
                logger.info(
                    f"[detect_project] {path} -> {language} project at {directory}"
                )
                return ProjectInfo(project_type=language, root_path=str(directory))

    logger.debug(f"[detect_project] No known manifest above {path}")
    raise ProjectUnknownError()


def probe_language_server(spec: LanguageServerSpec) -> bool:
    """
    Check whether the language server binary is installed and healthy.

    Runs the binary's version command; healthy means exit status 0 and
    no "error" (any case) in its stderr.

    Returns:
        True if available, False otherwise (including binary not found)
    """
    cmd = [spec.command, *spec.version_args]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            timeout=PROBE_TIMEOUT,
        )
    except FileNotFoundError as e:
        logger.info(f"[probe] {spec.command} not found in PATH: {e}")
        return False
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"[probe] {spec.command} could not be probed: {e}")
        return False

    stdout = result.stdout.decode("utf-8", errors="replace")
    stderr = result.stderr.decode("utf-8", errors="replace")
    healthy = result.returncode == 0 and "error" not in stderr.lower()

    if healthy:
        logger.info(f"[probe] {spec.command} available: {stdout.strip()}")
    else:
        logger.warning(
            f"[probe] {spec.command} check failed: exit_code={result.returncode}, "
            f"stderr={stderr.strip()!r}, stdout={stdout.strip()!r}"
        )

    return healthy
