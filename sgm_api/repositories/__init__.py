"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for accounts and the role catalog.
Account mutations that race with concurrent requests go through
AccountRepository.apply, which retries on optimistic-lock conflicts.
"""
