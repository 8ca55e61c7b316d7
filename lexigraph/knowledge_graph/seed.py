"""Starter business-vocabulary graph and sample flashcards."""
import uuid
from typing import Dict, List

from lexigraph.flashcards.models import FlashcardRecord
from lexigraph.utils import get_logger
from .store import DuplicateEdge, DuplicateNode, GraphStore

LOG = get_logger()

BUSINESS_CONCEPT = 'business_concept'

BASIC_CONCEPTS = [
    {
        'title': 'procurement',
        'description': 'The process of obtaining goods or services',
        'content': 'Procurement involves identifying, evaluating, and selecting suppliers to meet organizational needs.',
    },
    {
        'title': 'negotiate',
        'description': 'To discuss terms to reach an agreement',
        'content': 'Negotiation is a key skill in business for reaching mutually beneficial agreements.',
    },
    {
        'title': 'supplier',
        'description': 'A company that provides goods or services',
        'content': 'Suppliers are essential partners in the supply chain and procurement process.',
    },
    {
        'title': 'contract',
        'description': 'A legally binding agreement between parties',
        'content': 'Contracts define terms, conditions, and obligations for business relationships.',
    },
]

BASIC_RELATIONSHIPS = [
    ('procurement', 'negotiate', 'requires', 0.8),
    ('procurement', 'supplier', 'involves', 0.9),
    ('procurement', 'contract', 'results_in', 0.7),
    ('negotiate', 'contract', 'leads_to', 0.8),
    ('supplier', 'contract', 'signs', 0.6),
]

SAMPLE_FLASHCARDS = [
    ('procurement', 'The process of obtaining goods or services', 'The procurement department handles all vendor contracts.', 'noun', 'hard'),
    ('invoice', 'A document listing goods or services provided and their prices', 'Please send me the invoice for the consulting services.', 'noun', 'medium'),
    ('efficient', 'Achieving maximum productivity with minimum wasted effort', 'The new system is much more efficient than the old one.', 'adjective', 'easy'),
    ('deadline', 'A date or time by which something must be completed', 'The project deadline is next Friday.', 'noun', 'easy'),
    ('negotiate', 'To try to reach an agreement by formal discussion', 'We need to negotiate the terms of the contract.', 'verb', 'medium'),
    ('supplier', 'A company that provides goods or services to another company', 'Our main supplier raised prices this quarter.', 'noun', 'medium'),
    ('contract', 'A legally binding agreement between parties', 'Both parties signed the contract on Monday.', 'noun', 'medium'),
]


def seed_basic_concepts(store: GraphStore) -> Dict[str, int]:
    """Create the starter concepts and links; existing ones are left alone."""
    created_nodes = 0
    created_edges = 0
    ids = {}
    for concept in BASIC_CONCEPTS:
        node = store.find_node_by_title(concept['title'])
        if node is None:
            try:
                node = store.create_node(BUSINESS_CONCEPT, concept['title'], concept['description'], concept['content'])
                created_nodes += 1
            except DuplicateNode as e:
                node = e.existing or store.find_node_by_title(concept['title'])
        ids[concept['title']] = node.id

    for source, target, rel_type, strength in BASIC_RELATIONSHIPS:
        if store.find_edge_between(ids[source], ids[target]) is not None:
            continue
        try:
            store.create_edge(ids[source], ids[target], rel_type, strength, {'source': 'seed'})
            created_edges += 1
        except DuplicateEdge:
            continue

    LOG.info('graph_seeded', extra={'nodes_created': created_nodes, 'edges_created': created_edges})
    return {'nodes_created': created_nodes, 'edges_created': created_edges}


def seed_sample_flashcards(store, user_id: str) -> List[FlashcardRecord]:
    """Load the sample deck for ``user_id`` into a store that accepts flashcards."""
    cards = []
    for word, definition, example, pos, difficulty in SAMPLE_FLASHCARDS:
        card = FlashcardRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            word=word,
            definition=definition,
            example=example,
            part_of_speech=pos,
            difficulty=difficulty,
            tags=['business'],
        )
        cards.append(store.add_flashcard(card))
    return cards
