"""Utilities for the flight surety ledger."""

from .config import SuretyConfig, load_config, get_config, reset_config

__all__ = ["SuretyConfig", "load_config", "get_config", "reset_config"]
