from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Iterable, Optional, Tuple


# Request-scoped values read by LoggingContextFilter
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
principal_var: ContextVar[Optional[str]] = ContextVar("principal", default=None)
authorities_var: ContextVar[Tuple[str, ...]] = ContextVar("authorities", default=())

ROLE_PREFIX = "ROLE_"


# PUBLIC_INTERFACE
def bind_principal(subject: Optional[str], authorities: Iterable[str] = ()) -> None:
    """Install the authenticated subject and its granted authorities for the current request."""
    principal_var.set(subject)
    authorities_var.set(tuple(sorted(authorities)))


# PUBLIC_INTERFACE
def reset_principal() -> None:
    principal_var.set(None)
    authorities_var.set(())


def _short_roles(authorities: Iterable[str]) -> str:
    # ROLE_USER_MANAGEMENT -> USER_MANAGEMENT
    names = [a[len(ROLE_PREFIX):] if a.startswith(ROLE_PREFIX) else a for a in authorities]
    return ",".join(names) or "-"


class LoggingContextFilter(logging.Filter):
    """
    Inject correlation_id, the authenticated username and its roles into each
    record. Anonymous requests and background work log "-" for all three.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        subject = principal_var.get()
        record.principal = subject or "-"
        record.roles = _short_roles(authorities_var.get()) if subject else "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with a pipe-separated format and the request context filter."""
    handler = logging.StreamHandler(stream=sys.stdout)
    fmt = (
        "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | user=%(principal)s | "
        "roles=%(roles)s | %(message)s"
    )
    handler.setFormatter(logging.Formatter(fmt=fmt))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)
    # passlib warns on every bcrypt version probe; keep it at WARNING regardless of the app level.
    logging.getLogger("passlib").setLevel(max(level, logging.WARNING))
