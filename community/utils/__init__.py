"""Shared utilities for the community backend.

This package contains reusable helpers shared across route files.
"""

from community.utils.auth import (
    generate_token,
    token_required,
    token_optional,
)
from community.utils.network import get_client_ip

__all__ = [
    'generate_token',
    'token_required',
    'token_optional',
    'get_client_ip',
]
