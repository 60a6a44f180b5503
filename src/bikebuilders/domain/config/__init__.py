"""
Configuration domain package.

This package contains the settings models for the application.
"""

from .settings import AppSettings, RemoteSettings

__all__ = [
    "AppSettings",
    "RemoteSettings",
]
