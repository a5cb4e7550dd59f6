"""Haku: personal activity planner state, backups and schema migration."""

__version__ = "1.0.1"
