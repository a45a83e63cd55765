"""Querybridge: multi-tenant project workspaces over external databases."""

__version__ = "0.1.0"
