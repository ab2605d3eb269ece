"""
Test: storage translation and CRUD against a throwaway SQLite database.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from essay_board import models, repository
from essay_board.edit_codes import generate_edit_code, is_well_formed, normalize_edit_code
from essay_board.schemas import BodyPart, CommentCreate, EssayUpdate


class TestEditCodes:
	def test_generated_codes_are_well_formed(self):
		for _ in range(50):
			assert is_well_formed(generate_edit_code())

	def test_normalize(self):
		assert normalize_edit_code("  abc12z ") == "ABC12Z"
		assert normalize_edit_code(None) == ""

	def test_wrong_length_is_malformed(self):
		assert not is_well_formed("ABC12")
		assert not is_well_formed("ABC1234")
		assert not is_well_formed("ABC-12")


class TestEssays:
	def test_create_translates_columns(self, db_session, essay_payload):
		essay = repository.create_essay(db_session, essay_payload(edit_code="abc123"))
		row = db_session.get(models.Essay, essay.id)
		assert row.title == "초등학생 스마트폰 사용을 줄여야 한다"
		assert row.author_name == "김민수"
		assert row.author_class == "2"
		assert row.author_number == "15"
		assert row.body == [{"reason": essay.body[0].reason, "source": "네이버 지식백과"}]
		assert row.edit_code == "ABC123"
		assert essay.edit_code == "ABC123"
		assert essay.likes == 0

	def test_list_newest_first_without_codes(self, db_session, essay_payload):
		first = repository.create_essay(db_session, essay_payload(edit_code="AAA111"))
		second = repository.create_essay(db_session, essay_payload(edit_code="BBB222", topic="숙제를 줄여야 한다"))
		db_session.get(models.Essay, first.id).created_at = datetime.utcnow() - timedelta(minutes=5)
		db_session.commit()
		essays = repository.list_essays(db_session)
		assert [e.id for e in essays] == [second.id, first.id]
		assert all(e.edit_code is None for e in essays)

	def test_duplicate_code_rejected(self, db_session, essay_payload):
		repository.create_essay(db_session, essay_payload(edit_code="DUP111"))
		with pytest.raises(repository.DuplicateEditCodeError):
			repository.create_essay(db_session, essay_payload(edit_code="dup111"))

	def test_other_integrity_errors_are_not_code_clashes(self, db_session, essay_payload, monkeypatch):
		def failing_commit():
			raise IntegrityError("INSERT INTO essays", {}, Exception("NOT NULL constraint failed: essays.title"))

		monkeypatch.setattr(db_session, "commit", failing_commit)
		with pytest.raises(IntegrityError):
			repository.create_essay(db_session, essay_payload(edit_code="FRE555"))

	def test_find_by_code_is_case_insensitive(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		found = repository.find_essay_by_code(db_session, " abc123 ")
		assert found is not None
		assert found.id == created.id
		assert found.full_text == created.full_text
		assert found.body == created.body

	def test_find_unknown_code(self, db_session):
		assert repository.find_essay_by_code(db_session, "ZZZ999") is None

	def test_update_keeps_identity_and_code(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		updated = repository.update_essay(
			db_session,
			"ABC123",
			EssayUpdate(full_text="완전히 새로 쓴 글", body=[BodyPart(reason="새 근거", source="새 출처")]),
		)
		assert updated.full_text == "완전히 새로 쓴 글"
		assert updated.body == [BodyPart(reason="새 근거", source="새 출처")]
		assert updated.topic == created.topic
		assert updated.student == created.student
		assert updated.edit_code == "ABC123"

	def test_update_unknown_code(self, db_session):
		assert repository.update_essay(db_session, "ZZZ999", EssayUpdate(topic="x")) is None

	def test_missing_likes_and_body_are_tolerated(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		row = db_session.get(models.Essay, created.id)
		row.body = []
		db_session.commit()
		essay = repository.essay_from_row(row)
		assert len(essay.body) == 1
		assert essay.likes == 0


class TestLikes:
	def test_increment(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		assert repository.increment_likes(db_session, created.id).likes == 1
		assert repository.increment_likes(db_session, created.id).likes == 2

	def test_increment_unknown(self, db_session):
		assert repository.increment_likes(db_session, "missing") is None


class TestComments:
	def test_new_essay_has_no_comments(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		assert repository.list_comments(db_session, created.id) == []

	def test_comments_oldest_first(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		first = repository.create_comment(db_session, created.id, CommentCreate(author_name="이서연", content="좋은 글이에요"))
		second = repository.create_comment(
			db_session,
			created.id,
			CommentCreate(author_name="박지훈", content="근거가 탄탄해요", author_grade="6", author_class="1", author_number="3"),
		)
		db_session.get(models.Comment, first.id).created_at = datetime.utcnow() - timedelta(minutes=1)
		db_session.commit()
		comments = repository.list_comments(db_session, created.id)
		assert [c.id for c in comments] == [first.id, second.id]
		assert comments[1].author_class == "1"

	def test_delete_cascades_comments(self, db_session, essay_payload):
		created = repository.create_essay(db_session, essay_payload())
		repository.create_comment(db_session, created.id, CommentCreate(author_name="선생님", content="잘 썼어요"))
		assert repository.delete_essay(db_session, created.id)
		assert repository.list_essays(db_session) == []
		assert db_session.query(models.Comment).count() == 0

	def test_delete_unknown(self, db_session):
		assert not repository.delete_essay(db_session, "missing")
