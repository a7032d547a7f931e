"""
Distractor selection for the Choice phase.

Pure logic, no I/O. Candidates are the other cards of the current graph.
Candidates whose meaning shares an intent with the answer are discarded;
the rest are ranked by keyword overlap with the answer, ties broken randomly.
"""

import random
import re
from typing import List, Optional, Sequence, Set

STOP_WORDS = {
    "a", "an", "the", "and", "or", "but", "is", "are", "was", "were",
    "to", "of", "in", "on", "at", "by", "for", "with", "about", "as",
}


class DistractorSelector:

    @classmethod
    def select(cls, answer, pool: Sequence, amount: int = 3, rng: Optional[random.Random] = None) -> List:
        """
        Pick up to ``amount`` distractor cards for ``answer`` from ``pool``.

        When every candidate overlaps the answer's meaning, the unfiltered
        pool is used instead.
        """
        rng = rng or random.Random()
        candidates = [c for c in pool if c.id != answer.id]
        if not candidates or amount <= 0:
            return []

        target_intents = cls._split_meaning(answer.meaning)
        target_words = cls._keywords(answer.meaning)

        valid = []
        seen = set()
        for card in candidates:
            text = (card.meaning or '').strip().lower()
            if card.word.lower() == answer.word.lower():
                continue
            if text and text in seen:
                continue
            if target_intents & cls._split_meaning(card.meaning):
                continue
            seen.add(text)
            valid.append(card)

        if not valid:
            valid = candidates

        scored = [
            (len(target_words & cls._keywords(card.meaning)), rng.random(), card)
            for card in valid
        ]
        scored.sort(key=lambda s: (s[0], s[1]), reverse=True)
        return [card for _, _, card in scored[:amount]]

    @classmethod
    def options(cls, answer, pool: Sequence, amount: int = 3, rng: Optional[random.Random] = None) -> List:
        """Distractors plus the answer, shuffled."""
        rng = rng or random.Random()
        options = cls.select(answer, pool, amount, rng) + [answer]
        rng.shuffle(options)
        return options

    @staticmethod
    def _split_meaning(text: str) -> Set[str]:
        if not text:
            return set()
        parts = re.split(r'[;/,|]+', text)
        return {part.strip().lower() for part in parts if part.strip()}

    @staticmethod
    def _keywords(text: str) -> Set[str]:
        if not text:
            return set()
        return {w for w in re.findall(r'\w+', text.lower()) if w not in STOP_WORDS}
