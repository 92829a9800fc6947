"""
Configuration for git-dependency.

Settings are merged in three layers: defaults < user < project.

    ~/.git-dependency/config            user level (JSON)
    <working copy>/git-dependency.config project level (JSON)
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .dependency import BRANCH_MASTER, COMMIT_HEAD

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = "git-dependency.config"

KNOWN_KEYS = {
    "default_branch": "Branch used when none is given",
    "default_commit": "Tag, branch or commit used when none is given",
}


def default_config():
    return {
        "default_branch": BRANCH_MASTER,
        "default_commit": COMMIT_HEAD,
    }


@dataclass(frozen=True)
class Settings:
    """Everything one command invocation needs, built once by the CLI"""

    default_branch: str = BRANCH_MASTER
    default_commit: str = COMMIT_HEAD
    verbose: bool = False
    debug: bool = False
    commit: bool = False
    message: Optional[str] = None


def get_user_config_path():
    """Get user-level configuration file path (cross-platform)"""
    return Path.home() / ".git-dependency" / "config"


def get_project_config_path(project_root):
    return Path(project_root) / PROJECT_CONFIG_NAME


def load_json_file(file_path, description="config file"):
    """Load and parse a JSON file with helpful error messages"""
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print("Error: Invalid JSON in {} (line {}, column {})".format(
            Path(file_path).name, e.lineno, e.colno))
        print("  {}".format(str(e.msg)))
        raise
    except OSError as e:
        print("Error: Failed to load {}: {}".format(description, e))
        raise


def load_config_file(config_path, description):
    """Load one configuration layer; missing or broken files count as empty"""
    if not config_path.exists():
        return {}

    try:
        data = load_json_file(config_path, description)
    except (OSError, ValueError):
        return {}

    if not isinstance(data, dict):
        print("⚠️  Warning: {} is not a JSON object, ignoring it".format(config_path))
        return {}

    return data


def load_user_config():
    return load_config_file(get_user_config_path(), "user config")


def load_project_config(project_root):
    return load_config_file(get_project_config_path(project_root), "project config")


def load_config(project_root):
    """Load configuration with three-way merge: defaults < user < project"""
    config = default_config()

    for layer in (load_user_config(), load_project_config(project_root)):
        for key, value in layer.items():
            if key in KNOWN_KEYS:
                config[key] = value
            else:
                logger.debug("Ignoring unknown configuration key: %s", key)

    return config


def build_settings(config, verbose=False, debug=False, commit=False, message=None):
    """Freeze merged configuration and command line flags into Settings"""
    return Settings(
        default_branch=str(config["default_branch"]),
        default_commit=str(config["default_commit"]),
        verbose=verbose,
        debug=debug,
        commit=commit,
        message=message,
    )


def write_config_file(config_path, data):
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4)
