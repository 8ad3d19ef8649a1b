"""
Configuration module for Strata.

Uses pydantic-settings for environment variable loading, with layered
YAML config files resolved by strata.overlay.
"""

from strata.config.settings import Settings

__all__ = ["Settings"]
