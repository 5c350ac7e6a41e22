"""
API route modules for authentication and administration.

This package contains subrouters for:
- Auth: login and token refresh
- Account: the authenticated account and password change
- Users: user administration, lock/status toggles and role assignment
- Roles: role catalog

Routers are included from sgm_api.api.main (under the /api/v1 prefix).
"""
