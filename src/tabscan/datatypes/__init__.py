"""Shared dataclasses, enums and exceptions."""
