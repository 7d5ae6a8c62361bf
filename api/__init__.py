"""
PAYFLOW API - The editor session boundary.
"""

from api.editor import EditorSession, DEFAULT_PLACEHOLDERS, parse_amount

__all__ = [
    "EditorSession",
    "DEFAULT_PLACEHOLDERS",
    "parse_amount",
]
