"""
Signage CMS Utility Functions.

This package contains utility functions and decorators used across the CMS:
- auth: Authentication decorators and session validation
- query: Query string parsing, sorting and pagination helpers
"""

from signage_cms.utils.auth import login_required, get_current_user

__all__ = [
    'login_required',
    'get_current_user',
]
