"""Git utilities for Dropkick."""

import logging
import subprocess
from typing import Dict

logger = logging.getLogger(__name__)

# git config keys read into the interpolation context
GIT_CONFIG_KEYS = {
    "user_name": "user.name",
    "user_email": "user.email",
    "registry_domain": "user.registry-domain",
    "k8s_domain": "user.k8s-domain",
    "repo_domain": "user.repo-domain",
}


def get_git_config(key: str) -> str:
    """Get a git config value, or an empty string if unset."""
    try:
        result = subprocess.run(
            ["git", "config", key],
            capture_output=True,
            text=True,
            cwd="."
        )

        if result.returncode == 0:
            return result.stdout.strip()
        return ""

    except (subprocess.SubprocessError, FileNotFoundError) as e:
        logger.debug("git config %s failed: %s", key, e)
        return ""


def get_git_values() -> Dict[str, str]:
    """Read every git config value the interpolation context uses."""
    return {name: get_git_config(key) for name, key in GIT_CONFIG_KEYS.items()}
