"""Completion-service client used to draft docstrings."""
