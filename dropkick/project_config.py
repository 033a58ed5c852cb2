"""
Project configuration and interpolation context for Dropkick.

The optional ``.dropkickrc`` file in the working directory names the
project and tunes interpolation::

    project:
      name: my-service
      template: template-rust-wasm-http
      prefix: template-
    interpolation:
      strict: true
    variables:
      team: platform

The interpolation context is derived from the project name, git config
and any extra ``variables``.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from InquirerPy import inquirer

from . import git_utils
from .errors import ConfigError
from .models import ProjectConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".dropkickrc"

DEFAULT_REPO_DOMAIN = "github.com"
MISSING_AUTHOR = "TODO: Write your name"
MISSING_EMAIL = "TODO: Write your email address"
MISSING_K8S_DOMAIN = "k8s.domain.missing.from.gitconfig.local"

ContextProvider = Callable[[], Dict[str, Any]]


def load_project_config(path: Union[str, Path] = CONFIG_FILENAME) -> Optional[ProjectConfig]:
    """Load .dropkickrc.

    Args:
        path: Location of the configuration file

    Returns:
        ProjectConfig, or None if the file does not exist

    Raises:
        ConfigError: If the file is not valid YAML or has the wrong shape
    """
    config_path = Path(path)
    if not config_path.exists():
        return None

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Error loading {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    project = data.get("project") or {}
    interpolation = data.get("interpolation") or {}
    variables = data.get("variables") or {}
    for section, value in (("project", project), ("interpolation", interpolation), ("variables", variables)):
        if not isinstance(value, dict):
            raise ConfigError(f"{config_path}: '{section}' must be a mapping")

    strict = interpolation.get("strict")
    if strict is not None and not isinstance(strict, bool):
        raise ConfigError(f"{config_path}: 'interpolation.strict' must be true or false")

    name = project.get("name")
    template = project.get("template")
    return ProjectConfig(
        name=str(name) if name else None,
        template=str(template) if template else None,
        prefix=str(project.get("prefix") or ""),
        strict=strict,
        variables={str(key): value for key, value in variables.items()},
    )


def save_project_config(config: ProjectConfig, path: Union[str, Path] = CONFIG_FILENAME) -> None:
    """Write a ProjectConfig to .dropkickrc."""
    project: Dict[str, Any] = {"name": config.name}
    if config.template:
        project["template"] = config.template
    if config.prefix:
        project["prefix"] = config.prefix

    data: Dict[str, Any] = {"project": project}
    if config.strict is not None:
        data["interpolation"] = {"strict": config.strict}
    if config.variables:
        data["variables"] = dict(config.variables)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _capitalize(word: str) -> str:
    """Uppercase the first character and keep the rest as is."""
    return word[:1].upper() + word[1:]


def _join_words(name: str, separator: str) -> str:
    return separator.join(_capitalize(part) for part in name.replace("-", "_").split("_"))


def build_context(
    name: str,
    prefix: str = "",
    git_values: Optional[Dict[str, str]] = None,
    template: str = "",
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the interpolation context for a project.

    Args:
        name: Project name, e.g. "my-service"
        prefix: Prefix removed to form ``unprefixed_name``
        git_values: Values from ``git_utils.get_git_values``
        template: Name of the template the project was created from
        extra: Additional variables, applied last

    Returns:
        Mapping of placeholder name to value
    """
    git_values = git_values or {}
    user_name = git_values.get("user_name", "")
    user_email = git_values.get("user_email", "")
    registry_domain = git_values.get("registry_domain", "")
    k8s_domain = git_values.get("k8s_domain", "")
    repo_domain = git_values.get("repo_domain", "") or DEFAULT_REPO_DOMAIN

    pascal_name = _join_words(name, "")
    unprefixed_name = name[len(prefix):] if prefix and name.startswith(prefix) else name
    underscored_name = name.replace("-", "_")

    constant_name = "".join(_capitalize(part) for part in name.split("_") if part)
    if "-" in constant_name:
        constant_name = "::".join(_capitalize(part) for part in constant_name.split("-"))

    image_path = f"{user_name}/{name}".lower()

    context: Dict[str, Any] = {
        "name": name,
        "title": _join_words(name, " "),
        "unprefixed_name": unprefixed_name,
        "unprefixed_pascal": _join_words(unprefixed_name, ""),
        "underscored_name": underscored_name,
        "pascal_name": pascal_name,
        "camel_name": pascal_name[:1].lower() + pascal_name[1:],
        "screamcase_name": underscored_name.upper(),
        "namespaced_path": name.replace("-", "/"),
        "makefile_path": f"{underscored_name}/{underscored_name}",
        "constant_name": constant_name,
        "constant_array": constant_name.split("::"),
        "author": user_name or MISSING_AUTHOR,
        "email": user_email or MISSING_EMAIL,
        "git_repo_domain": repo_domain,
        "git_repo_url": f"https://{repo_domain}/{user_name}/{name}",
        "git_repo_path": f"{repo_domain}/{user_name}/{name}".lower(),
        "image_path": image_path,
        "registry_domain": registry_domain,
        "registry_repo_path": f"{registry_domain}/{image_path}".lower(),
        "k8s_domain": k8s_domain or MISSING_K8S_DOMAIN,
        "template": template,
    }

    if extra:
        context.update(extra)
    return context


def prompt_project_name(default: Optional[str] = None) -> str:
    """Ask the user for the project name."""
    name = inquirer.text(
        message="Project name:",
        default=default or Path.cwd().name,
        validate=lambda value: bool(value.strip()),
        invalid_message="Project name cannot be empty",
    ).execute()
    return name.strip()


def make_context_provider(
    config: Optional[ProjectConfig],
    name: Optional[str] = None,
    template: Optional[str] = None,
    interactive: Optional[bool] = None,
) -> ContextProvider:
    """Create a callable that builds the interpolation context on demand.

    The project name comes from ``name``, then from ``config``, and is
    prompted for only when neither has it and stdin is a terminal.

    Raises (when called):
        ConfigError: If no project name is available
    """
    config = config or ProjectConfig()
    if interactive is None:
        interactive = sys.stdin.isatty()

    def provide() -> Dict[str, Any]:
        project_name = name or config.name
        if not project_name:
            if not interactive:
                raise ConfigError(
                    f"No project name: pass --name or set project.name in {CONFIG_FILENAME}"
                )
            project_name = prompt_project_name()

        logger.debug("Building interpolation context for %s", project_name)
        return build_context(
            project_name,
            prefix=config.prefix,
            git_values=git_utils.get_git_values(),
            template=template or config.template or "",
            extra=config.variables,
        )

    return provide
