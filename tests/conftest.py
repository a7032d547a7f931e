import os
import sys
import tempfile

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from lexigraph_app import create_app, EngineServices
from lexigraph_app.config import Config
from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.core.error_handlers import NetworkError
from lexigraph_app.models import (
    Card,
    CardState,
    EmbeddingService,
    GenerationService,
    MemoryCardStore,
    RatingService,
)


class TestConfig(Config):
    __test__ = False
    TESTING = True
    LOG_DIR = os.path.join(tempfile.gettempdir(), 'lexigraph-test-logs')


# Three loose topics: fruit, weather, emotion. Words not listed have no vector.
VECTORS = {
    'apple': [1.0, 0.0, 0.0],
    'banana': [0.9, 0.1, 0.0],
    'cherry': [0.5, 0.5, 0.0],
    'grape': [0.95, 0.05, 0.05],
    'mango': [0.85, 0.15, 0.0],
    'rain': [0.0, 1.0, 0.0],
    'storm': [0.1, 0.95, 0.0],
    'cloud': [0.0, 0.9, 0.1],
    'joy': [0.0, 0.0, 1.0],
    'grief': [0.05, 0.0, 0.95],
}


def make_card(card_id, word, meaning='', state=CardState.NEW, **kwargs):
    return Card(id=card_id, word=word, meaning=meaning or f"meaning of {word}", state=state, **kwargs)


class FakeEmbeddings(EmbeddingService):
    def __init__(self, vectors=None):
        self.vectors = {k: np.asarray(v, dtype=float) for k, v in (vectors or VECTORS).items()}
        self.calls = 0
        self.fail = False

    async def embed(self, word):
        self.calls += 1
        if self.fail:
            raise NetworkError('embedding service down', service='embeddings')
        return self.vectors.get((word or '').lower())


class FakeGeneration(GenerationService):
    def __init__(self):
        self.label_calls = []
        self.example_calls = []
        self.related_calls = []
        self.fail_labels = False
        self.fail_related = False

    async def label_edges(self, pairs):
        self.label_calls.append(list(pairs))
        if self.fail_labels:
            raise NetworkError('labels unavailable', service='generation')
        return [{'source': a, 'target': b, 'label': 'synonym'} for a, b in pairs]

    async def example(self, word_a, word_b, relation=''):
        self.example_calls.append((word_a, word_b, relation))
        return f"{word_a} and {word_b} ({relation})"

    async def related_words(self, word):
        self.related_calls.append(word)
        if self.fail_related:
            raise NetworkError('related words unavailable', service='generation')
        return [
            {'word': 'everywhere', 'meaning': 'all places', 'relation': 'Synonym'},
            {'word': 'omnipresent', 'meaning': 'present', 'relation': 'Synonym'},
            {'word': 'rare', 'meaning': 'not common', 'relation': 'Antonym'},
        ]


class FakeRating(RatingService):
    def __init__(self):
        self.calls = []
        self.fail = False

    def rate(self, card, grade):
        self.calls.append((card.id, grade))
        if self.fail:
            raise NetworkError('scheduler unreachable', service='rating')
        return card.copy(state=CardState.LEARNING)


@pytest.fixture
def store():
    return MemoryCardStore()


@pytest.fixture
def embeddings():
    return FakeEmbeddings()


@pytest.fixture
def generation():
    return FakeGeneration()


@pytest.fixture
def rating():
    return FakeRating()


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def services(store, embeddings, generation, rating, settings):
    return EngineServices(
        repository=store,
        rating=rating,
        embeddings=embeddings,
        generation=generation,
        settings=settings,
    )


@pytest.fixture
def app(services):
    app = create_app(TestConfig, services=services)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()
