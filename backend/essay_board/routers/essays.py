from __future__ import annotations
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .. import repository
from ..db import get_db
from ..edit_codes import is_well_formed, normalize_edit_code
from ..schemas import Essay, EssayCreate, EssayUpdate
from .auth import Viewer, get_viewer, is_teacher

router = APIRouter(prefix="/essays", tags=["essays"])
logger = logging.getLogger(__name__)


def _validated_code(raw: str) -> str:
	code = normalize_edit_code(raw)
	if not is_well_formed(code):
		raise HTTPException(status_code=400, detail="수정 코드는 6자리여야 합니다.")
	return code


@router.get("", response_model=List[Essay])
def list_essays(db: Session = Depends(get_db)):
	return repository.list_essays(db)


@router.post("", response_model=Essay, status_code=201)
def create_essay(req: EssayCreate, db: Session = Depends(get_db)):
	req = req.model_copy(update={"edit_code": _validated_code(req.edit_code)})
	if not req.topic.strip() or not req.full_text.strip():
		raise HTTPException(status_code=400, detail="topic and full_text are required")
	if not req.student.name.strip():
		raise HTTPException(status_code=400, detail="student name is required")
	try:
		essay = repository.create_essay(db, req)
	except repository.DuplicateEditCodeError:
		raise HTTPException(status_code=409, detail="edit code already in use")
	logger.info("Created essay %s", essay.id)
	return essay


@router.get("/by-code/{code}", response_model=Essay)
def find_essay_by_code(code: str, db: Session = Depends(get_db)):
	essay = repository.find_essay_by_code(db, _validated_code(code))
	if essay is None:
		raise HTTPException(status_code=404, detail="해당 코드를 가진 글을 찾을 수 없습니다.")
	return essay


@router.put("/by-code/{code}", response_model=Essay)
def update_essay(code: str, req: EssayUpdate, db: Session = Depends(get_db)):
	if req.topic is not None and not req.topic.strip():
		raise HTTPException(status_code=400, detail="topic cannot be blank")
	if req.full_text is not None and not req.full_text.strip():
		raise HTTPException(status_code=400, detail="full_text cannot be blank")
	essay = repository.update_essay(db, _validated_code(code), req)
	if essay is None:
		raise HTTPException(status_code=404, detail="해당 코드를 가진 글을 찾을 수 없습니다.")
	return essay


@router.delete("/{essay_id}")
def delete_essay(
	essay_id: str,
	x_edit_code: Optional[str] = Header(default=None),
	viewer: Viewer = Depends(get_viewer),
	db: Session = Depends(get_db),
):
	row = repository.get_essay_row(db, essay_id)
	if row is None:
		raise HTTPException(status_code=404, detail="essay not found")
	# Teachers moderate freely; everyone else needs the essay's own edit code
	if not is_teacher(viewer) and normalize_edit_code(x_edit_code) != row.edit_code:
		raise HTTPException(status_code=403, detail="not allowed to delete this essay")
	repository.delete_essay(db, essay_id)
	logger.info("Deleted essay %s (by %s)", essay_id, viewer.role)
	return {"success": True}


@router.post("/{essay_id}/like", response_model=Essay)
def like_essay(essay_id: str, db: Session = Depends(get_db)):
	essay = repository.increment_likes(db, essay_id)
	if essay is None:
		raise HTTPException(status_code=404, detail="essay not found")
	return essay
