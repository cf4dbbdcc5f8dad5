"""
install_config.py - optional YAML configuration for install_deps.py.

Lookup order: --config PATH, then $INSTALL_DEPS_CONFIG, then config.yml at the
repo root.  A missing file means built-in defaults.

Example config.yml::

    install_command: [apt-get, install, -y]
    packages:
      ubuntu-latest: [libasound2-dev, libfontconfig-dev]
    log_file: logs/install_deps.log
"""

import os
from pathlib import Path

import yaml

from dependency_manager import DEFAULT_INSTALL_COMMAND, PACKAGE_SETS

ROOT = Path(__file__).resolve().parent
CONFIG_FILE = ROOT / "config.yml"
CONFIG_ENV_VAR = "INSTALL_DEPS_CONFIG"


class ConfigError(ValueError):
    """Raised when the config file cannot be read or has the wrong shape."""


def config_path(override=None) -> Path:
    """Return the config file location, honouring --config and the env var."""
    if override:
        return Path(override)
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env)
    return CONFIG_FILE


def _is_str_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def load_config(path=None, warn=print) -> dict:
    """Load and validate the config file.

    Returns a dict with keys ``install_command``, ``packages`` and
    ``log_file``, filled with defaults where the file is silent.  Package
    entries for OS identifiers outside PACKAGE_SETS are dropped with a
    warning.
    """
    path = config_path(path)
    config = {
        "install_command": list(DEFAULT_INSTALL_COMMAND),
        "packages": {k: list(v) for k, v in PACKAGE_SETS.items()},
        "log_file": None,
    }
    if not path.exists():
        return config

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load {path}: {e}") from e

    if data is None:
        return config
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    if "install_command" in data:
        cmd = data["install_command"]
        if not _is_str_list(cmd) or not cmd:
            raise ConfigError(
                f"{path}: install_command must be a non-empty list of strings"
            )
        config["install_command"] = cmd

    packages = data.get("packages")
    if packages is None:
        packages = {}
    if not isinstance(packages, dict):
        raise ConfigError(f"{path}: packages must be a mapping")
    for os_id, names in packages.items():
        if os_id not in PACKAGE_SETS:
            warn(f"[WARNING] {path}: ignoring packages for unknown OS {os_id!r}")
            continue
        if names is None:
            names = []
        if not _is_str_list(names):
            raise ConfigError(f"{path}: packages.{os_id} must be a list of strings")
        config["packages"][os_id] = names

    log_file = data.get("log_file")
    if log_file is not None and not isinstance(log_file, str):
        raise ConfigError(f"{path}: log_file must be a string")
    if log_file:
        log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = path.parent / log_path
        config["log_file"] = log_path

    return config
