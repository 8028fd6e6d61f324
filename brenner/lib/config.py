import shutil
from functools import lru_cache
from pathlib import Path

import yaml

from . import paths


def get_default_config_path() -> Path:
    return paths.package_root() / "config.yaml"


def config_file() -> Path:
    """Return config file path in the brenner home directory."""
    return paths.dot_brenner() / "config.yaml"


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config() -> dict:
    """Load config.yaml, falling back to packaged defaults when the user copy is missing."""
    path = config_file()
    if not path.exists():
        path = get_default_config_path()
        if not path.exists():
            return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def init_config() -> bool:
    """Initialize ~/.brenner/config.yaml from defaults if missing. True when created."""
    target = config_file()
    if target.exists():
        return False

    target.parent.mkdir(parents=True, exist_ok=True)

    default_config_path = get_default_config_path()
    if not default_config_path.exists():
        raise FileNotFoundError(f"Default config not found at {default_config_path}")

    shutil.copy(default_config_path, target)
    clear_cache()
    return True


def data_dir() -> Path:
    """Base directory that owns the .research/ tree."""
    value = load_config().get("data_dir")
    if value:
        return Path(value).expanduser()
    return Path.cwd()


def base_url() -> str | None:
    return load_config().get("base_url") or None


def roster() -> dict[str, str]:
    """Agent name -> role mapping from config."""
    return dict(load_config().get("roster") or {})


def logging_level() -> str:
    return str(load_config().get("logging_level") or "WARNING")
