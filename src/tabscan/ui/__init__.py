"""Operator console."""
