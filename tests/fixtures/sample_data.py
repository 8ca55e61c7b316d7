from datetime import timedelta

from lexigraph.flashcards.models import FlashcardRecord, ReviewEvent


def flashcard(card_id, word, definition='', user_id='u1', **kw):
    return FlashcardRecord(id=card_id, user_id=user_id, word=word, definition=definition, **kw)


def review(card_id, at, is_correct=True, user_id='u1'):
    return ReviewEvent(flashcard_id=card_id, user_id=user_id, is_correct=is_correct, reviewed_at=at)


def add_reviews(store, card_id, now, outcomes, user_id='u1', spacing=timedelta(hours=1)):
    """Add one review per outcome, newest last, ending ``spacing`` before ``now``."""
    added = []
    for i, ok in enumerate(outcomes):
        at = now - spacing * (len(outcomes) - i)
        added.append(store.add_review(review(card_id, at, ok, user_id)))
    return added


def business_deck(user_id='u1'):
    return [
        flashcard('fc-proc', 'procurement', 'The process of obtaining goods or services', user_id, part_of_speech='noun', difficulty='hard'),
        flashcard('fc-supp', 'supplier', 'A company that provides goods or services', user_id, part_of_speech='noun', difficulty='medium'),
        flashcard('fc-nego', 'negotiate', 'To discuss terms to reach an agreement', user_id, part_of_speech='verb', difficulty='medium'),
        flashcard('fc-cont', 'contract', 'A legally binding agreement between parties', user_id, part_of_speech='noun', difficulty='easy'),
    ]
