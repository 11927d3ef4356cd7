"""Exception types raised by the sorting engine.

``ConfigurationError`` marks a mismatch between the loaded item bank and what
the scoring engine expects. Callers should surface it and abort the session;
retrying cannot help. ``SessionStateError`` marks a call made in the wrong
phase of a quiz session.
"""
from __future__ import annotations

from typing import Iterable, List


class ConfigurationError(ValueError):
    """Item bank and scoring engine disagree."""


class UnknownTraitError(ConfigurationError):
    def __init__(self, trait: str, item_id: str | None = None):
        self.trait = trait
        self.item_id = item_id
        where = f" (item {item_id})" if item_id else ""
        super().__init__(f"Unknown trait: {trait}{where}")


class UnknownCategoryError(ConfigurationError):
    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown category: {category}")


class UnknownOptionError(ConfigurationError):
    def __init__(self, option_key: str, item_id: str | None = None):
        self.option_key = option_key
        self.item_id = item_id
        where = f" on item {item_id}" if item_id else ""
        super().__init__(f"Unknown forced-choice option key: {option_key}{where}")


class NoItemsForPairError(ConfigurationError):
    def __init__(self, pair_key: str):
        self.pair_key = pair_key
        super().__init__(f"No forced-choice items for category pair: {pair_key}")


class BankValidationError(ConfigurationError):
    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        summary = "; ".join(self.problems[:5])
        more = f" (+{len(self.problems) - 5} more)" if len(self.problems) > 5 else ""
        super().__init__(f"Invalid item bank: {summary}{more}")


class SessionStateError(RuntimeError):
    """Operation not valid in the current session phase."""


__all__ = [
    "ConfigurationError",
    "UnknownTraitError",
    "UnknownCategoryError",
    "UnknownOptionError",
    "NoItemsForPairError",
    "BankValidationError",
    "SessionStateError",
]
