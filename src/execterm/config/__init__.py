"""Configuration management for execterm.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for the backend endpoint and
its access token.
"""

from execterm.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
