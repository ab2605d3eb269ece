from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class Essay(Base):
	__tablename__ = "essays"
	id = Column(String(32), primary_key=True, default=_new_id)
	# Column names follow the hosted table; title holds the essay topic
	title = Column(String(256), nullable=False)
	introduction = Column(Text, nullable=False, default="")
	body = Column(JSON, nullable=False, default=list)  # [{reason, source}, ...]
	conclusion = Column(Text, nullable=False, default="")
	full_text = Column(Text, nullable=True)
	edit_code = Column(String(6), unique=True, index=True, nullable=False)
	author_grade = Column(String(16), nullable=True)
	author_class = Column(String(16), nullable=True)
	author_number = Column(String(16), nullable=True)
	author_name = Column(String(64), nullable=True)
	likes = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

	comments = relationship(
		"Comment",
		back_populates="essay",
		cascade="all, delete-orphan",
		order_by="Comment.created_at",
	)


class Comment(Base):
	__tablename__ = "comments"
	id = Column(String(32), primary_key=True, default=_new_id)
	essay_id = Column(String(32), ForeignKey("essays.id", ondelete="CASCADE"), nullable=False, index=True)
	content = Column(Text, nullable=False)
	author_grade = Column(String(16), nullable=True)
	author_class = Column(String(16), nullable=True)
	author_number = Column(String(16), nullable=True)
	author_name = Column(String(64), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	essay = relationship("Essay", back_populates="comments")
