from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path


@dataclass(frozen=True)
class HubRuntimeConfig:
    config_path: str | None = None
    configdir: str | None = None
    identity_path: str | None = None
    templates_path: str | None = None
    dest_name: str = "exnebula.hub"
    announce_on_start: bool = True
    announce_period_s: float = 0.0
    hub_name: str = "exnebula"
    max_text_chars: int = 2000
    display_name_max_chars: int = 64
    user_id_max_chars: int = 128
    rate_limit_msgs_per_minute: int = 240
    stats_log_interval_s: float = 0.0
    log_level: str = "INFO"
    log_rns_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None
    # Per-component levels, e.g. {"router": "DEBUG"}; see logging_config.
    log_components: Mapping[str, str] = field(default_factory=dict)


_LOGGING_KEYS = {
    "level": "log_level",
    "rns_level": "log_rns_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
    "components": "log_components",
}

# Empty strings in the file mean "unset" for these keys.
_OPTIONAL_KEYS = ("configdir", "templates_path", "log_file", "log_datefmt")


def default_exnebula_dir() -> Path:
    home = os.environ.get("EXNEBULA_HOME")
    return Path(home) if home else Path.home() / ".exnebula"


def default_config_path() -> Path:
    return default_exnebula_dir() / "exnebula.toml"


def default_identity_path() -> Path:
    return default_exnebula_dir() / "hub_identity"


def default_templates_path() -> Path:
    return default_exnebula_dir() / "templates.toml"


def ensure_private_dir(path: Path) -> None:
    """Create ``path`` (owner-only where the filesystem allows it)."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(path, 0o700)
    except OSError:
        pass


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: HubRuntimeConfig, data: dict) -> HubRuntimeConfig:
    """Merge a parsed config file over ``base``.

    Top-level keys, the ``[hub]`` table and the ``[logging]`` table are all
    accepted. Unknown keys are ignored.
    """

    hub = data.get("hub") if isinstance(data, dict) else None
    if isinstance(hub, dict):
        data = {**data, **hub}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped = {
            field: log_table.get(key)
            for key, field in _LOGGING_KEYS.items()
            if key in log_table
        }
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")

    updates = {k: v for k, v in data.items() if k in allowed}

    if "announce" in data and "announce_on_start" not in updates:
        updates["announce_on_start"] = bool(data["announce"])

    for key in _OPTIONAL_KEYS:
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(base, **updates) if updates else base
