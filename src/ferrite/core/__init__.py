"""
Core components for Ferrite.

This module provides the API client, the model catalogue, conversation and
session state, web-search answers and image handling.
"""

__all__ = ["client", "completion", "conversation", "image", "models", "session", "web"]
