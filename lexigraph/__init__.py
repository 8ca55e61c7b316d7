"""Concept graph and study recommendation engine for vocabulary flashcards."""

__version__ = '0.1.0'
