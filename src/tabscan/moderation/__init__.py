"""Nickname normalization, rule matching, AI escalation and report text."""
