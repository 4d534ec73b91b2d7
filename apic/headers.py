"""
Request header construction.
"""

from typing import Dict, Mapping, Optional


def build_headers(content_type: str,
                  auth_token: Optional[str] = None,
                  extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Build the header map for one request.

    Custom headers from ``extra`` are applied first so the request's own
    ``Content-Type`` and ``Authorization`` take precedence.
    """
    headers: Dict[str, str] = dict(extra or {})
    headers['Content-Type'] = content_type

    if auth_token:
        headers['Authorization'] = f"Bearer {auth_token}"

    return headers
