import subprocess
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict

from ..config import Settings

STARTED_AT = datetime.now(timezone.utc).isoformat()


@lru_cache
def _git_head() -> str:
    try:
        output = subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return "unknown"
    return output.decode("utf-8").strip()


def get_version_info(settings: Settings) -> Dict[str, str]:
    """Deployment metadata for /api/health.

    ``GIT_SHA`` and ``BUILD_TIME`` are normally stamped by the deploy; without
    them the checkout's HEAD and the process start time are reported.
    """
    return {
        "gitSha": settings.git_sha or _git_head(),
        "buildTime": settings.build_time or STARTED_AT,
        "env": settings.app_env,
    }
