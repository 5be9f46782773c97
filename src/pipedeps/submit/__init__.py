"""Dependency graph submission."""
