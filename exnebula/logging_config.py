"""Logging setup for exnebulad.

Handlers are installed on the ``exnebula`` package logger instead of the root
logger, so a process that embeds the hub keeps its own logging untouched.
Each component logger can be tuned separately from the config file::

    [logging.components]
    router = "DEBUG"
    registry = "WARNING"

Components left out inherit the package level.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import HubRuntimeConfig

PACKAGE_LOGGER = "exnebula"
COMPONENTS = ("hub", "session", "router", "registry")

_FALLBACK_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_level(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return default
    if text.isdigit():
        return int(text)
    return logging.getLevelNamesMapping().get(text, default)


def _component_levels(components: Any, default: int) -> tuple[dict[str, int], list[str]]:
    """Resolve ``[logging.components]`` into logger levels.

    Returns the levels for known components and the names that were not
    recognised, so the caller can report them once logging is up.
    """
    levels = {name: logging.NOTSET for name in COMPONENTS}
    unknown: list[str] = []
    if not isinstance(components, Mapping):
        return levels, unknown
    for name, value in components.items():
        if name in levels:
            levels[name] = _parse_level(value, default)
        else:
            unknown.append(str(name))
    return levels, unknown


def _file_handler(log_file: str) -> logging.Handler:
    p = Path(os.path.expanduser(log_file))
    p.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(p, encoding="utf-8")
    try:
        os.chmod(p, 0o600)
    except OSError:
        pass
    return handler


def configure_logging(
    cfg: HubRuntimeConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
) -> logging.Logger:
    """Attach handlers to the ``exnebula`` logger and set component levels.

    Safe to call again: handlers from a previous call are closed and replaced.
    An empty ``override_file`` disables file logging.
    """
    level = _parse_level(override_level or cfg.log_level, logging.INFO)

    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())

    log_file = cfg.log_file if override_file is None else override_file
    if log_file and str(log_file).strip():
        handlers.append(_file_handler(str(log_file)))

    formatter = logging.Formatter(
        fmt=str(cfg.log_format or "").strip() or _FALLBACK_FORMAT,
        datefmt=cfg.log_datefmt or None,
    )

    pkg = logging.getLogger(PACKAGE_LOGGER)
    # Warnings captured below are logged on py.warnings; send them to the
    # same place as the hub's own records.
    warnings_logger = logging.getLogger("py.warnings")
    for target in (pkg, warnings_logger):
        for old in list(target.handlers):
            target.removeHandler(old)
            old.close()
        for h in handlers:
            h.setFormatter(formatter)
            target.addHandler(h)
        target.propagate = False

    pkg.setLevel(level)
    levels, unknown = _component_levels(cfg.log_components, level)
    for name, component_level in levels.items():
        logging.getLogger(f"{PACKAGE_LOGGER}.{name}").setLevel(component_level)

    logging.getLogger("RNS").setLevel(_parse_level(cfg.log_rns_level, logging.WARNING))
    logging.captureWarnings(True)

    if unknown:
        pkg.warning(
            "Ignoring unknown [logging.components] entries: %s (known: %s)",
            ", ".join(sorted(unknown)),
            ", ".join(COMPONENTS),
        )

    return pkg
