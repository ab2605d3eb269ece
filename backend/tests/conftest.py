"""
Shared fixtures for the essay board tests.
Each test gets its own SQLite file under tmp_path; AI calls are faked, so no
network is touched.
"""
import os

# Must be set before essay_board.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TEACHER_PASSWORD"] = "teacher-pass"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("OPENROUTER_API_KEY", None)

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from essay_board import models  # noqa: F401
from essay_board.api_client import EssayApiClient
from essay_board.db import Base, get_db, make_engine
from essay_board.liked_store import LikedEssayStore
from essay_board.main import app as fastapi_app
from essay_board.routers.ai import get_advisor
from essay_board.schemas import BodyPart, EssayCreate, Student, TopicSuggestions
from essay_board.session import AppSession


def text_of(length, phrase="스마트폰 사용 시간을 줄이면 가족과 대화할 시간이 늘어납니다. "):
	"""Return exactly `length` characters of readable filler."""
	repeated = phrase * (length // len(phrase) + 1)
	return repeated[:length]


class FakeAdvisor:
	def __init__(self):
		self.topics = []
		self.questions = []

	async def refine_topic(self, raw_topic):
		self.topics.append(raw_topic)
		return TopicSuggestions(
			refined_topic=f"{raw_topic.strip()} (다듬은 주장)",
			suggestions=["급식을 남기지 말자", "교실에 식물을 기르자", "운동장 사용 시간을 늘려야 한다"],
		)

	async def ask_assistant(self, snapshot, question):
		self.questions.append(question)
		return f"'{snapshot.topic}'에 대한 조언"


@pytest.fixture
def engine(tmp_path):
	eng = make_engine(f"sqlite:///{tmp_path / 'essays.db'}")
	Base.metadata.create_all(bind=eng)
	yield eng
	eng.dispose()


@pytest.fixture
def session_factory(engine):
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db_session(session_factory):
	db = session_factory()
	try:
		yield db
	finally:
		db.close()


@pytest.fixture
def fake_advisor():
	return FakeAdvisor()


@pytest.fixture
def app(session_factory, fake_advisor):
	def override_get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	fastapi_app.dependency_overrides[get_db] = override_get_db
	fastapi_app.dependency_overrides[get_advisor] = lambda: fake_advisor
	yield fastapi_app
	fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
	return TestClient(app)


@pytest.fixture
def teacher_headers(client):
	r = client.post("/auth/teacher", json={"password": "teacher-pass"})
	assert r.status_code == 200
	return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def student():
	return Student(grade="6", class_number="2", student_id="15", name="김민수")


@pytest.fixture
def essay_payload(student):
	"""Build an EssayCreate; keyword overrides replace top-level fields."""
	def _build(**overrides):
		intro = text_of(120)
		reason = text_of(80, "휴대폰을 멀리 두면 숙제에 더 집중할 수 있습니다. ")
		conclusion = text_of(110, "그러므로 우리는 스마트폰 사용을 줄여야 합니다. ")
		fields = dict(
			topic="초등학생 스마트폰 사용을 줄여야 한다",
			introduction=intro,
			body=[BodyPart(reason=reason, source="네이버 지식백과")],
			conclusion=conclusion,
			full_text=f"{intro}\n\n{reason}\n\n{conclusion}",
			student=student,
			edit_code="ABC123",
		)
		fields.update(overrides)
		return EssayCreate(**fields)
	return _build


@pytest.fixture
def liked_store(tmp_path):
	return LikedEssayStore(str(tmp_path / "liked"))


@pytest.fixture
def make_session(app, fake_advisor, liked_store):
	"""Build an AppSession wired to the app through an in-process transport.

	Call it from inside the coroutine under test so the HTTP client lives on
	that event loop.
	"""
	def _make(store=None, advisor=None):
		if store is None:
			store = EssayApiClient("http://testserver", transport=httpx.ASGITransport(app=app))
		return AppSession(store, advisor=advisor or fake_advisor, liked_store=liked_store)
	return _make
