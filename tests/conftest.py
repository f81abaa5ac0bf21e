"""
Shared test fixtures.

Provides: app built from TestConfig (in-memory SQLite), Flask test client,
and a fake Gemini service that records embed/generate calls.
"""

import numpy as np
import pytest

from config import TestConfig
from ragchat import create_app
from ragchat.extensions import db
from ragchat.services.intent_router import CLASSIFIER_INSTRUCTION

QUERY_JSON = '{"intent": "QUERY", "response": ""}'


class FakeGeminiService:
    """Stands in for GeminiService; embeddings come from a text -> vector map."""

    def __init__(self, classify_response=QUERY_JSON, answer="stub answer", vectors=None, default_vector=None):
        self.classify_response = classify_response
        self.answer = answer
        self.vectors = vectors or {}
        self.default_vector = default_vector or [1.0, 0.0]
        self.embed_calls = []
        self.generate_calls = []

    def embed(self, text):
        self.embed_calls.append(text)
        return np.asarray(self.vectors.get(text, self.default_vector), dtype=np.float32)

    def generate(self, prompt, system_instruction):
        self.generate_calls.append((prompt, system_instruction))
        if system_instruction == CLASSIFIER_INSTRUCTION:
            response = self.classify_response
        else:
            response = self.answer
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def answer_calls(self):
        return [c for c in self.generate_calls if c[1] != CLASSIFIER_INSTRUCTION]


@pytest.fixture
def app():
    """App with a fresh in-memory database and an active app context."""
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_service():
    return FakeGeminiService()


@pytest.fixture
def patched_service(monkeypatch, fake_service):
    """Route handlers get fake_service instead of a real GeminiService."""
    monkeypatch.setattr("ragchat.routes.chat.GeminiService", lambda: fake_service)
    return fake_service
