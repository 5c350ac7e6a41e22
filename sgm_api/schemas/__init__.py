"""
Public Pydantic schemas used by FastAPI routes and tests.

Account and token payloads are exchanged in camelCase; error envelopes and
other common models live in schemas.common.
"""

from .common import MessageResponse  # noqa: F401
