"""
Artifact Gateway Utility Modules

Provides result-envelope response helpers.
"""

from apps.services.artifact_gateway.utils.responses import (
    envelope_response,
    error_response,
)

__all__ = [
    "envelope_response",
    "error_response",
]
