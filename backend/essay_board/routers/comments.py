from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import repository
from ..db import get_db
from ..schemas import Comment, CommentCreate

router = APIRouter(prefix="/essays/{essay_id}/comments", tags=["comments"])


def _require_essay(db: Session, essay_id: str) -> None:
	if repository.get_essay_row(db, essay_id) is None:
		raise HTTPException(status_code=404, detail="essay not found")


@router.get("", response_model=List[Comment])
def list_comments(essay_id: str, db: Session = Depends(get_db)):
	_require_essay(db, essay_id)
	return repository.list_comments(db, essay_id)


@router.post("", response_model=Comment, status_code=201)
def create_comment(essay_id: str, req: CommentCreate, db: Session = Depends(get_db)):
	content = (req.content or "").strip()
	author_name = (req.author_name or "").strip()
	if not content:
		raise HTTPException(status_code=400, detail="의견 내용을 입력해주세요.")
	if not author_name:
		raise HTTPException(status_code=400, detail="author_name is required")
	_require_essay(db, essay_id)
	return repository.create_comment(
		db,
		essay_id,
		req.model_copy(update={"content": content, "author_name": author_name}),
	)
