"""Readers for local files and remote repositories."""
