"""Configuration package."""

from mlm_ledger.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
