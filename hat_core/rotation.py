from __future__ import annotations

import logging
import random
from typing import Dict, Iterable, List, Optional

from .errors import NoItemsForPairError
from .question_bank import pair_key
from .types import ForcedChoiceItem

log = logging.getLogger(__name__)


class ForcedChoiceRotation:
    """Serves forced-choice items per unordered category pair.

    Each pair's items are dealt from a shuffled deck; no item repeats until
    the deck is exhausted, after which it is reshuffled and dealt again.
    """

    def __init__(self, items: Iterable[ForcedChoiceItem], rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._decks: Dict[str, List[ForcedChoiceItem]] = {}
        self._index: Dict[str, int] = {}
        self.reshuffles: Dict[str, int] = {}

        for it in items:
            key = pair_key(*it.category_pair)
            self._decks.setdefault(key, []).append(it)
            self._index.setdefault(key, 0)
            self.reshuffles.setdefault(key, 0)

        for deck in self._decks.values():
            self.rng.shuffle(deck)

    def available(self, a: str, b: str) -> int:
        return len(self._decks.get(pair_key(a, b), []))

    def next_item(self, a: str, b: str) -> ForcedChoiceItem:
        key = pair_key(a, b)
        deck = self._decks.get(key)
        if not deck:
            raise NoItemsForPairError(key)

        idx = self._index.get(key, 0)
        if idx >= len(deck):
            self.rng.shuffle(deck)
            idx = 0
            self.reshuffles[key] = self.reshuffles.get(key, 0) + 1
            log.debug("rotation reshuffle pair=%s size=%d", key, len(deck))

        item = deck[idx]
        self._index[key] = idx + 1
        return item
