"""
Classification Service support

Client and wire models for the external HTTP service that groups TODO lines
into categories.
"""

from .models import ClassifiedTodo, ClassificationRequest, ClassificationResponse, ConnectionTestResult
from .client import ClassificationClient

__all__ = [
    'ClassifiedTodo',
    'ClassificationRequest',
    'ClassificationResponse',
    'ConnectionTestResult',
    'ClassificationClient',
]
