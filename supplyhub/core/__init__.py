"""Database, identity, domain operations, config and logging."""
