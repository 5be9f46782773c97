"""Packaged JSON schemas for pipedeps artifacts."""
