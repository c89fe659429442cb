"""ExNebula real-time hub: sessions, community chat and mentor replies over Reticulum."""

__version__ = "0.1.0"
