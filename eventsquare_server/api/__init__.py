"""
HTTP API for EventSquare.

This module provides the FastAPI application serving events,
invitations and RSVPs. Every read and write goes through the
access evaluator with the record type's policy.
"""

from .app import create_app
from .config import Settings

__all__ = ["create_app", "Settings"]
