"""
Core application utilities for settings and FastAPI dependencies.

This package provides:
- Application-level settings, including the security policy (separate from DB settings)
- Password hashing and the process-wide token signing key
- Error taxonomy, message catalog and role catalog
- Dependency helpers (request session, services, current principal, role checks)
"""
