"""Configuration module for the admin console."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
