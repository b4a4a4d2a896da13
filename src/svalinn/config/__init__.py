"""
Configuration module for Svalinn.

Uses pydantic-settings for environment variable loading.
"""

from svalinn.config.settings import Settings, find_project_root
from svalinn.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Settings", "find_project_root"]
