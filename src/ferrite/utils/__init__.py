"""
Utilities package for Ferrite.
"""

__all__ = ["logging_setup"]
