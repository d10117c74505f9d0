"""
Configuration Package

Exposes the environment-driven `Config` used by the application factory.
"""

from .config import Config

__all__ = ['Config']
