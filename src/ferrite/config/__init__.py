"""
Configuration package for Ferrite.

This package contains config file discovery and the layered settings
(CLI flags, environment, ``.env`` and ``ferriteconf.yaml``).
"""

__all__ = ["loader", "settings"]
