"""Parsing, scope resolution, usage analysis and the lint engine."""
