"""
Core module - message primitives shared by providers and chat routing.
"""

from ragpilot.core.message import Message, Role, format_history

__all__ = [
    "Message",
    "Role",
    "format_history",
]
