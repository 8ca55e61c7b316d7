"""Cheap relation-type heuristic for automatically inferred edges.

The label is advisory metadata used to group edges for similarity search; it
is expected to be wrong sometimes. Builders take the classifier as a plain
callable so a semantic model can replace it without touching the graph code.
"""
import re
from typing import Callable, List, Optional

from lexigraph.flashcards.models import FlashcardRecord

SYNONYM = 'synonym'
RELATED_TO = 'related_to'
SAME_CATEGORY = 'same_category'
CO_STUDIED = 'co_studied'

MIN_MEANINGFUL_LENGTH = 4

RelationClassifier = Callable[[FlashcardRecord, FlashcardRecord], str]

_WORD_RE = re.compile(r"[a-z0-9']+")


def tokenize(text: Optional[str]) -> List[str]:
    return _WORD_RE.findall((text or '').lower())


def meaningful_words(text: Optional[str]) -> List[str]:
    """Words longer than three characters, in order of appearance."""
    return [w for w in tokenize(text) if len(w) >= MIN_MEANINGFUL_LENGTH]


def first_meaningful_word(text: Optional[str]) -> Optional[str]:
    words = meaningful_words(text)
    return words[0] if words else None


def classify_relationship(card_a: FlashcardRecord, card_b: FlashcardRecord) -> str:
    def_a = (card_a.definition or '').lower()
    def_b = (card_b.definition or '').lower()
    word_a = (card_a.word or '').strip().lower()
    word_b = (card_b.word or '').strip().lower()

    shared = set(meaningful_words(def_a)) & set(meaningful_words(def_b))
    if len(shared) >= 2:
        return SYNONYM

    if (word_b and word_b in def_a) or (word_a and word_a in def_b):
        return RELATED_TO

    pos_a = (card_a.part_of_speech or '').strip().lower()
    pos_b = (card_b.part_of_speech or '').strip().lower()
    if pos_a and pos_a == pos_b:
        return SAME_CATEGORY

    return CO_STUDIED
