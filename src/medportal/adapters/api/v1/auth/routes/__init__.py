"""Subpackage aggregating individual auth route modules."""

__all__ = ["login", "logout", "me", "refresh"]
