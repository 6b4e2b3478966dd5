import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ieltspeak.db import Base, get_db
from ieltspeak.gemini_client import get_client_factory
from ieltspeak.main import app
from ieltspeak.orchestrator import registry
from ieltspeak.schemas import toefl_overall
from ieltspeak.store import ResultCache, SessionStore, get_result_cache


class FakeGemini:
	"""Stands in for GeminiClient: canned reply for generate, canned chunks for stream_generate."""

	def __init__(self, reply="", chunks=None, error=None, stream_error=None):
		self.reply = reply
		self.chunks = list(chunks or [])
		self.error = error
		self.stream_error = stream_error
		self.prompts = []
		self.models = []
		self.closed = False
		self.stream_closed = False

	async def generate(self, prompt):
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.reply

	async def stream_generate(self, prompt):
		self.prompts.append(prompt)
		if self.stream_error is not None:
			raise self.stream_error
		try:
			for chunk in self.chunks:
				yield chunk
		finally:
			self.stream_closed = True

	async def aclose(self):
		self.closed = True


def evaluation_dict(ielts_overall=6.5, toefl=(3, 3, 3), positives=4, negatives=4):
	d, l, t = toefl
	return {
		"ielts_ratings": {
			"fluency": 6.5,
			"grammar": 6.0,
			"vocabulary": 7.0,
			"pronunciation": 6.5,
			"overall": ielts_overall,
		},
		"toefl_ratings": {
			"delivery": d,
			"language_use": l,
			"topic_development": t,
			"overall": toefl_overall(d, l, t),
		},
		"feedback": {
			"positives": [f"You did well on point {i}." for i in range(1, positives + 1)],
			"negatives": [f"You could improve point {i}." for i in range(1, negatives + 1)],
		},
	}


def evaluation_json(**kwargs):
	return json.dumps(evaluation_dict(**kwargs))


@pytest.fixture
def engine():
	eng = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=eng)
	yield eng
	eng.dispose()


@pytest.fixture
def session_factory(engine):
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory):
	session = session_factory()
	try:
		yield session
	finally:
		session.close()


@pytest.fixture
def store(db):
	return SessionStore(db)


@pytest.fixture
def cache():
	return ResultCache()


@pytest.fixture
def gemini():
	return FakeGemini(reply=evaluation_json(), chunks=["Well, ", "I grew up ", "by the sea."])


@pytest.fixture(autouse=True)
def _clear_registry():
	registry._calls.clear()
	yield
	registry._calls.clear()


@pytest.fixture
def client(session_factory, cache, gemini):
	def override_db():
		session = session_factory()
		try:
			yield session
		finally:
			session.close()

	def factory(model=None):
		gemini.models.append(model)
		return gemini

	app.dependency_overrides[get_db] = override_db
	app.dependency_overrides[get_result_cache] = lambda: cache
	app.dependency_overrides[get_client_factory] = lambda: factory
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()


@pytest.fixture
def misconfigured(client):
	def factory(model=None):
		raise ValueError("GEMINI_API_KEY is not configured")

	app.dependency_overrides[get_client_factory] = lambda: factory
	return client
