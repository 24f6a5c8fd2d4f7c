"""Lint rules.

To add a rule, subclass LintRule in its own module and list it in ALL_RULES.
"""
from typing import List

from .base import LintRule
from .missing_docstring_openai import MissingDocstringOpenai
from .unnecessary_conversion_for_iterable import UnnecessaryConversionForIterable


ALL_RULES = (MissingDocstringOpenai, UnnecessaryConversionForIterable)


def get_rules() -> List[LintRule]:
    """Fresh instance of every registered rule."""
    return [rule() for rule in ALL_RULES]


__all__ = ['ALL_RULES', 'LintRule', 'get_rules']
