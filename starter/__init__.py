"""Starter web application: home page, health function and ORM handle."""

__version__ = "0.1.0"

__all__ = ["__version__"]
