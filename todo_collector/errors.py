"""
Error types for the TODO collector.

Parse failures are never raised; they degrade to empty structures where they
happen. Everything below is caught by TodoManager and turned into a single
notification.
"""

from typing import Optional


class TodoCollectorError(Exception):
    """Base class for all collector errors"""


class ConfigurationError(TodoCollectorError):
    """Required setting is missing (output path, endpoint, credential)"""


class ProtectionError(TodoCollectorError):
    """Output note is still inside the post-classification protection window"""

    def __init__(self, hours: int, remaining_ms: int):
        self.hours = hours
        self.remaining_ms = remaining_ms
        super().__init__(f"Classified output is protected for {hours} hours after classification")


class ClassificationError(TodoCollectorError):
    """Transport failure talking to the classification service"""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)
