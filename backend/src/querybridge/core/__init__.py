"""Core domain: membership rules, project registry and query execution."""
