"""Credential hashing, signed tokens and request principal resolution."""
