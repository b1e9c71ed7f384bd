"""Subtask image storage."""
