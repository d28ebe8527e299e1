"""
Terminal UI helpers for Ferrite: prompts, confirmations and answer output.
"""

__all__ = ["console", "prompts"]
