"""Row <-> record translation and CRUD for essays and comments.

The hosted table keeps its historical column names (``title`` for the topic,
flat ``author_*`` columns for the writer), so everything leaving this module is
converted into the wire models from :mod:`schemas`.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .edit_codes import normalize_edit_code


class DuplicateEditCodeError(ValueError):
	pass


def _body_from_row(raw: Any) -> List[schemas.BodyPart]:
	parts = []
	for item in raw or []:
		if isinstance(item, dict):
			parts.append(schemas.BodyPart(reason=str(item.get("reason") or ""), source=str(item.get("source") or "")))
	return parts or [schemas.BodyPart()]


def _body_to_row(parts: List[schemas.BodyPart]) -> List[Dict[str, str]]:
	return [{"reason": p.reason, "source": p.source} for p in parts]


def essay_from_row(row: models.Essay, *, include_code: bool = False) -> schemas.Essay:
	return schemas.Essay(
		id=row.id,
		created_at=row.created_at,
		topic=row.title,
		introduction=row.introduction or "",
		body=_body_from_row(row.body),
		conclusion=row.conclusion or "",
		full_text=row.full_text or "",
		student=schemas.Student(
			grade=row.author_grade or "",
			class_number=row.author_class or "",
			student_id=row.author_number or "",
			name=row.author_name or "",
		),
		likes=max(row.likes or 0, 0),
		edit_code=row.edit_code if include_code else None,
	)


def comment_from_row(row: models.Comment) -> schemas.Comment:
	return schemas.Comment(
		id=row.id,
		essay_id=row.essay_id,
		created_at=row.created_at,
		author_name=row.author_name,
		content=row.content,
		author_grade=row.author_grade,
		author_class=row.author_class,
		author_number=row.author_number,
	)


def list_essays(db: Session) -> List[schemas.Essay]:
	rows = db.query(models.Essay).order_by(models.Essay.created_at.desc()).all()
	return [essay_from_row(r) for r in rows]


def get_essay_row(db: Session, essay_id: str) -> Optional[models.Essay]:
	return db.get(models.Essay, essay_id)


def create_essay(db: Session, data: schemas.EssayCreate) -> schemas.Essay:
	row = models.Essay(
		title=data.topic,
		introduction=data.introduction,
		body=_body_to_row(data.body),
		conclusion=data.conclusion,
		full_text=data.full_text,
		edit_code=normalize_edit_code(data.edit_code),
		author_grade=data.student.grade,
		author_class=data.student.class_number,
		author_number=data.student.student_id,
		author_name=data.student.name,
		likes=0,
	)
	db.add(row)
	try:
		db.commit()
	except IntegrityError as err:
		db.rollback()
		if _find_row_by_code(db, data.edit_code) is None:
			raise
		raise DuplicateEditCodeError(data.edit_code) from err
	db.refresh(row)
	return essay_from_row(row, include_code=True)


def _find_row_by_code(db: Session, code: str) -> Optional[models.Essay]:
	return db.query(models.Essay).filter(models.Essay.edit_code == normalize_edit_code(code)).first()


def find_essay_by_code(db: Session, code: str) -> Optional[schemas.Essay]:
	row = _find_row_by_code(db, code)
	return essay_from_row(row, include_code=True) if row else None


def update_essay(db: Session, code: str, changes: schemas.EssayUpdate) -> Optional[schemas.Essay]:
	row = _find_row_by_code(db, code)
	if row is None:
		return None
	fields = changes.model_dump(exclude_unset=True, exclude_none=True)
	if "topic" in fields:
		row.title = fields["topic"]
	if "introduction" in fields:
		row.introduction = fields["introduction"]
	if changes.body is not None:
		row.body = _body_to_row(changes.body)
	if "conclusion" in fields:
		row.conclusion = fields["conclusion"]
	if "full_text" in fields:
		row.full_text = fields["full_text"]
	db.add(row)
	db.commit()
	db.refresh(row)
	return essay_from_row(row, include_code=True)


def delete_essay(db: Session, essay_id: str) -> bool:
	row = get_essay_row(db, essay_id)
	if row is None:
		return False
	db.delete(row)
	db.commit()
	return True


def increment_likes(db: Session, essay_id: str) -> Optional[schemas.Essay]:
	# Single UPDATE so concurrent likes from different browsers are not lost
	res = db.execute(
		update(models.Essay)
		.where(models.Essay.id == essay_id)
		.values(likes=models.Essay.likes + 1)
	)
	db.commit()
	if not res.rowcount:
		return None
	row = get_essay_row(db, essay_id)
	db.refresh(row)
	return essay_from_row(row)


def list_comments(db: Session, essay_id: str) -> List[schemas.Comment]:
	rows = (
		db.query(models.Comment)
		.filter(models.Comment.essay_id == essay_id)
		.order_by(models.Comment.created_at.asc())
		.all()
	)
	return [comment_from_row(r) for r in rows]


def create_comment(db: Session, essay_id: str, data: schemas.CommentCreate) -> schemas.Comment:
	row = models.Comment(
		essay_id=essay_id,
		content=data.content,
		author_name=data.author_name,
		author_grade=data.author_grade,
		author_class=data.author_class,
		author_number=data.author_number,
	)
	db.add(row)
	db.commit()
	db.refresh(row)
	return comment_from_row(row)
