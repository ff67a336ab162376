"""Pydantic schemas shared across packages."""
