#!/usr/bin/env python3
"""
Initialize a SQLite concept graph database.
Creates the schema, seeds the starter business vocabulary graph and a sample
flashcard deck, then prints a few example queries.

Usage:
  python scripts/init_graph.py                 # create or update lexigraph.db
  python scripts/init_graph.py --reset         # delete and recreate the database
  python scripts/init_graph.py --db other.db --user demo
"""
import argparse
import os

from dotenv import load_dotenv

from lexigraph.config import get_settings
from lexigraph.knowledge_graph import GraphQueries, SQLiteGraphStore, seed_basic_concepts, seed_sample_flashcards
from lexigraph.recommendations import RecommendationEngine


def init_graph(db_path: str, reset: bool = False, user_id: str = 'demo'):
    print(f"Initializing graph database: {db_path}")
    if reset and os.path.exists(db_path):
        print("Resetting database (--reset flag detected)...")
        os.remove(db_path)

    store = SQLiteGraphStore(db_path)
    try:
        counts = seed_basic_concepts(store)
        print(f"Seeded {counts['nodes_created']} concepts and {counts['edges_created']} relationships")

        if not store.flashcards_for_user(user_id):
            cards = seed_sample_flashcards(store, user_id)
            print(f"Added {len(cards)} sample flashcards for user '{user_id}'")

        queries = GraphQueries(store)
        related = queries.related_concepts('procurement', max_depth=1, limit=5)
        print('\nRelated concepts for "procurement":')
        for c in related.concepts:
            print(f"  - {c.title} ({c.relationship_type}, strength {c.strength:g}, {c.direction})")

        print('\nLearning paths from "procurement" to "contract":')
        for p in queries.learning_paths('procurement', 'contract', max_length=3):
            hops = ' -> '.join(['procurement'] + [s.concept for s in p.path])
            print(f"  - {hops} (avg {p.avg_strength:.2f}, {p.difficulty})")

        print('\nSimilar concepts to "procurement":')
        for s in queries.similar_concepts('procurement', limit=5):
            print(f"  - {s.concept} (score {s.similarity_score:g}, via {s.shared_relationship_type})")

        result = RecommendationEngine(store, queries=queries).recommendations(user_id, limit=5)
        print(f"\nRecommendations for '{user_id}':")
        for rec in result.recommendations:
            print(f"  - {rec.flashcard.word} [{rec.type.value}/{rec.priority.value}] {rec.reason}")
        for reason in result.reasons:
            print(f"  * {reason}")
    finally:
        store.close()
    print(f"\nDatabase ready: {db_path}")


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description="Initialize a lexigraph SQLite database")
    parser.add_argument('--db', default=None, help='SQLite file (defaults to GRAPH_SQLITE_PATH)')
    parser.add_argument('--reset', action='store_true', help='Delete and recreate the database')
    parser.add_argument('--user', default='demo', help='User that owns the sample flashcards')
    args = parser.parse_args()

    init_graph(args.db or get_settings().GRAPH_SQLITE_PATH, reset=args.reset, user_id=args.user)


if __name__ == '__main__':
    main()
