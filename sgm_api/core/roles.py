"""
Role catalog (RBAC).

Role names are plain string constants. Authorities carried in access tokens are
the role names prefixed with ROLE_. The catalog is exposed sorted by name; the
order is a display contract only.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

AUTHORITY_PREFIX = "ROLE_"

AUDITOR = "AUDITOR"
PROFILE_MANAGEMENT = "PROFILE_MANAGEMENT"
USER_MANAGEMENT = "USER_MANAGEMENT"

ROLE_DESCRIPTIONS: Dict[str, str] = {
    USER_MANAGEMENT: "Manage user accounts and their roles",
    PROFILE_MANAGEMENT: "Manage access profiles",
    AUDITOR: "Read-only access to audit information",
}


# PUBLIC_INTERFACE
def role_catalog() -> List[str]:
    """Return every known role name in lexicographic order."""
    return sorted(ROLE_DESCRIPTIONS)


# PUBLIC_INTERFACE
def authority_for(role_name: str) -> str:
    """Map a role name to the authority string carried in tokens."""
    return f"{AUTHORITY_PREFIX}{role_name}"


def authorities_for(role_names: Iterable[str]) -> List[str]:
    return sorted({authority_for(r) for r in role_names})


def is_known_role(role_name: str) -> bool:
    return role_name in ROLE_DESCRIPTIONS
