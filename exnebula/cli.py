from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

import RNS

from .config import (
    HubRuntimeConfig,
    apply_config_data,
    default_config_path,
    default_identity_path,
    default_templates_path,
    ensure_private_dir,
    load_toml,
)
from .logging_config import configure_logging
from .service import HubService


def _write_default_config(config_path: str, identity_path: str, templates_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# exnebula hub configuration (TOML)
#
# This file was created on first run.
# Edit it, then start exnebulad again.

[hub]

# Optional: Reticulum configuration directory.
# If left unset, Reticulum will choose its default (usually ~/.reticulum).
configdir = ""

# Where the hub stores its persistent identity (Reticulum Identity file).
identity_path = {identity_path!r}

# Optional TOML file overriding the mentor responses and learning paths.
# A missing file is fine; the built-in tables are used.
templates_path = {templates_path!r}

# Destination name to host the hub on.
dest_name = "exnebula.hub"

# Announcing (Reticulum destination announces)
#
# announce_on_start: send a single announce right after startup.
# announce_period_s: if >0, periodically re-announce.
announce_on_start = true
announce_period_s = 0.0

hub_name = "exnebula"

# Limits. Over-long text and names are dropped, not truncated.
max_text_chars = 2000
display_name_max_chars = 64
user_id_max_chars = 128

# Per-connection message rate limit (0 disables).
rate_limit_msgs_per_minute = 240

# Log a statistics summary every N seconds (0 disables).
stats_log_interval_s = 0.0

[logging]

# Log level for the hub itself.
level = "INFO"

# Log level for Reticulum/RNS Python logging (if used by your install).
rns_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""

# Per-component log levels (hub, session, router, registry).
# Components not listed use "level" above.
[logging.components]
# router = "DEBUG"
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _ensure_first_run_files(config_path: str, identity_path: str, templates_path: str) -> bool:
    created_any = False

    if not os.path.exists(config_path):
        _write_default_config(config_path, identity_path, templates_path)
        created_any = True

    if not os.path.exists(identity_path):
        storage_dir = os.path.dirname(identity_path)
        if storage_dir:
            ensure_private_dir(Path(storage_dir))
        ident = RNS.Identity()
        ident.to_file(identity_path)
        try:
            os.chmod(identity_path, 0o600)
        except OSError:
            pass
        created_any = True

    return created_any


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="exnebulad",
        description="ExNebula real-time hub (community chat and mentor replies over Reticulum)",
    )
    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to exnebula TOML config (created on first run)",
    )
    p.add_argument(
        "--identity",
        default=str(default_identity_path()),
        help="Path to hub identity file (created on first run)",
    )
    p.add_argument(
        "--templates",
        default=None,
        help=f"Path to templates TOML (default from config, else {default_templates_path()})",
    )
    p.add_argument(
        "--configdir", default=None, help="Reticulum config directory (optional)"
    )
    p.add_argument(
        "--dest-name", default=None, help="Destination app name (default: exnebula.hub)"
    )

    p.add_argument(
        "--no-announce",
        action="store_true",
        help="Disable announce on start (does not affect periodic announce)",
    )
    p.add_argument(
        "--announce-period",
        type=float,
        default=None,
        help="Periodic announce interval seconds (0 disables)",
    )
    p.add_argument("--hub-name", default=None, help="Hub name in announces")

    p.add_argument(
        "--rate-limit-msgs-per-minute",
        type=int,
        default=None,
        help="Per-connection message rate limit (0 disables)",
    )
    p.add_argument(
        "--max-text-chars",
        type=int,
        default=None,
        help="Maximum chat or mentor text length in characters",
    )
    p.add_argument(
        "--stats-interval",
        type=float,
        default=None,
        help="Log a stats summary every N seconds (0 disables)",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> HubRuntimeConfig:
    config_path = str(args.config)

    cfg = HubRuntimeConfig(
        config_path=config_path,
        identity_path=str(args.identity),
        templates_path=str(default_templates_path()),
    )

    if config_path and os.path.exists(config_path):
        cfg = apply_config_data(cfg, load_toml(config_path))

    if args.templates is not None:
        cfg = replace(cfg, templates_path=str(args.templates) or None)
    if args.configdir is not None:
        cfg = replace(cfg, configdir=args.configdir)
    if args.dest_name is not None:
        cfg = replace(cfg, dest_name=args.dest_name)

    if args.no_announce:
        cfg = replace(cfg, announce_on_start=False)
    if args.announce_period is not None:
        cfg = replace(cfg, announce_period_s=float(args.announce_period))
    if args.hub_name is not None:
        cfg = replace(cfg, hub_name=args.hub_name)

    if args.rate_limit_msgs_per_minute is not None:
        cfg = replace(
            cfg, rate_limit_msgs_per_minute=int(args.rate_limit_msgs_per_minute)
        )
    if args.max_text_chars is not None:
        cfg = replace(cfg, max_text_chars=int(args.max_text_chars))
    if args.stats_interval is not None:
        cfg = replace(cfg, stats_log_interval_s=float(args.stats_interval))

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    identity_path = str(args.identity)
    templates_path = str(args.templates or default_templates_path())

    if _ensure_first_run_files(config_path, identity_path, templates_path):
        print(
            "Created default exnebula files. Edit the configuration before starting:\n"
            f"- Config:   {config_path}\n"
            f"- Identity: {identity_path}\n"
            "\nThen re-run exnebulad.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = build_config(args)

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = HubService(cfg)
    svc.start()
    svc.run_forever()


if __name__ == "__main__":
    main()
