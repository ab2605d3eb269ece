from datetime import datetime, timedelta, timezone
from typing import Optional, Dict

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import logging

from ..settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])

logging.getLogger('passlib').setLevel(logging.ERROR)
logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error off: anonymous students browse the board without a token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/teacher", auto_error=False)

TEACHER_ROLE = "teacher"
STUDENT_ROLE = "student"


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class Viewer(BaseModel):
	role: str


class TeacherLoginRequest(BaseModel):
	password: str


# Hash of the configured shared password, computed once per configured value
_password_hashes: Dict[str, str] = {}


def _teacher_password_hash() -> Optional[str]:
	password = settings.teacher_password
	if not password:
		return None
	if password not in _password_hashes:
		_password_hashes[password] = pwd_context.hash(password)
	return _password_hashes[password]


def verify_teacher_password(password: str) -> bool:
	hashed = _teacher_password_hash()
	if hashed is None or not password:
		return False
	return pwd_context.verify(password, hashed)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(hours=8)
	return datetime.now(timezone.utc) + delta


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@router.post("/teacher", response_model=Token)
async def login_teacher(req: TeacherLoginRequest):
	if settings.teacher_password is None:
		raise HTTPException(status_code=503, detail="teacher password is not configured")
	if not verify_teacher_password(req.password or ""):
		logger.info("Rejected teacher login attempt")
		raise HTTPException(status_code=401, detail="비밀번호가 올바르지 않습니다.")
	return Token(access_token=create_access_token({"sub": TEACHER_ROLE, "role": TEACHER_ROLE}))


def get_viewer(token: Optional[str] = Depends(oauth2_scheme)) -> Viewer:
	if not token:
		return Viewer(role=STUDENT_ROLE)
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise HTTPException(status_code=401, detail="Could not validate credentials")
	if payload.get("role") != TEACHER_ROLE:
		raise HTTPException(status_code=401, detail="Could not validate credentials")
	return Viewer(role=TEACHER_ROLE)


def is_teacher(viewer: Viewer) -> bool:
	return viewer.role == TEACHER_ROLE


@router.get("/me", response_model=Viewer)
async def me(viewer: Viewer = Depends(get_viewer)):
	return viewer
