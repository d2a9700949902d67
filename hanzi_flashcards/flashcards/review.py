from __future__ import annotations

import random
from typing import List, Optional, Sequence

from hanzi_flashcards.models import Word


def shuffle_words(words: Sequence[Word], rng: Optional[random.Random] = None) -> List[Word]:
    """Fisher-Yates shuffle of a copy; the input sequence is left untouched."""
    rng = rng or random.Random()
    shuffled = list(words)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class ReviewDeck:
    """Flip-card review over its own copy of the collection."""

    def __init__(self, words: Sequence[Word], rng: Optional[random.Random] = None):
        self.cards: List[Word] = list(words)
        self.index = 0
        self.flipped = False
        self._rng = rng or random.Random()

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def current(self) -> Optional[Word]:
        if self.is_empty:
            return None
        return self.cards[self.index]

    @property
    def position(self) -> str:
        if self.is_empty:
            return '0 / 0'
        return f'{self.index + 1} / {len(self.cards)}'

    def flip(self) -> bool:
        self.flipped = not self.flipped
        return self.flipped

    def next(self) -> Optional[Word]:
        if self.is_empty:
            return None
        self.flipped = False
        self.index = (self.index + 1) % len(self.cards)
        return self.current

    def previous(self) -> Optional[Word]:
        if self.is_empty:
            return None
        self.flipped = False
        self.index = (self.index - 1) % len(self.cards)
        return self.current

    def shuffle(self) -> List[Word]:
        self.cards = shuffle_words(self.cards, self._rng)
        self.index = 0
        self.flipped = False
        return self.cards
