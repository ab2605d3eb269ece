"""Wire models shared by the service and the session core."""

from __future__ import annotations
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field


DEFAULT_GRADE = "6"


class Student(BaseModel):
	grade: str = DEFAULT_GRADE
	class_number: str
	student_id: str
	name: str

	def label(self) -> str:
		return f"{self.grade}학년 {self.class_number}반 {self.student_id}번 {self.name}"


class BodyPart(BaseModel):
	reason: str = ""
	source: str = ""


class EssayData(BaseModel):
	topic: str
	introduction: str = ""
	body: List[BodyPart] = Field(default_factory=lambda: [BodyPart()], min_length=1)
	conclusion: str = ""
	full_text: str


class EssayCreate(EssayData):
	student: Student
	edit_code: str


class EssayUpdate(BaseModel):
	# Partial replace of the editable fields; identity and edit code are immutable
	topic: Optional[str] = None
	introduction: Optional[str] = None
	body: Optional[Annotated[List[BodyPart], Field(min_length=1)]] = None
	conclusion: Optional[str] = None
	full_text: Optional[str] = None


class Essay(EssayData):
	id: str
	created_at: datetime
	student: Student
	likes: int = Field(default=0, ge=0)
	# Only present on responses to the author (create, find-by-code, update)
	edit_code: Optional[str] = None


class CommentCreate(BaseModel):
	author_name: str
	content: str
	author_grade: Optional[str] = None
	author_class: Optional[str] = None
	author_number: Optional[str] = None


class Comment(CommentCreate):
	id: str
	essay_id: str
	created_at: datetime


class TopicRequest(BaseModel):
	topic: str


class TopicSuggestions(BaseModel):
	refined_topic: str
	suggestions: List[str] = Field(default_factory=list, max_length=3)


class WritingSnapshot(BaseModel):
	topic: str = ""
	introduction: str = ""
	body: List[BodyPart] = Field(default_factory=list)
	conclusion: str = ""


class AssistantRequest(BaseModel):
	snapshot: WritingSnapshot
	question: str


class AssistantReply(BaseModel):
	reply: str
