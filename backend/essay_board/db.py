from __future__ import annotations
from typing import Optional
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .errors import StorageNotConfiguredError
from .settings import settings


# Markers left behind by .env templates that were never filled in
PLACEHOLDER_MARKERS = ("YOUR_", "your-", "<", "placeholder")

def resolve_database_url(url: Optional[str], key: Optional[str] = None) -> Optional[str]:
	if not url or not url.strip():
		return None
	url = url.strip()
	if "{key}" in url:
		if not key:
			return None
		url = url.replace("{key}", key)
	if any(marker in url for marker in PLACEHOLDER_MARKERS):
		return None
	return url


def enable_sqlite_foreign_keys(target: Engine) -> None:
	# SQLite ignores ON DELETE CASCADE unless the pragma is set per connection
	@event.listens_for(target, "connect")
	def _set_pragma(dbapi_connection, connection_record):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


def make_engine(url: Optional[str]) -> Optional[Engine]:
	if url is None:
		return None
	connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
	created = create_engine(url, connect_args=connect_args, future=True)
	if url.startswith("sqlite"):
		enable_sqlite_foreign_keys(created)
	return created


DATABASE_URL = resolve_database_url(settings.database_url, settings.database_key)

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def storage_configured() -> bool:
	return engine is not None


def get_db():
	if engine is None:
		raise StorageNotConfiguredError("Essay storage is not configured")
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for boards created by earlier releases
def ensure_schema(target: Optional[Engine] = None) -> None:
	target = target or engine
	if target is None:
		return
	try:
		inspector = inspect(target)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "essays" in tables:
		cols = {c["name"] for c in inspector.get_columns("essays")}
		with target.begin() as conn:
			if "likes" not in cols:
				conn.exec_driver_sql("ALTER TABLE essays ADD COLUMN likes INTEGER DEFAULT 0 NOT NULL")
			if "full_text" not in cols:
				conn.exec_driver_sql("ALTER TABLE essays ADD COLUMN full_text TEXT")
				# The first release stored the whole essay in a single content column
				if "content" in cols:
					conn.exec_driver_sql("UPDATE essays SET full_text = content WHERE full_text IS NULL")
			if "edit_code" not in cols:
				conn.exec_driver_sql("ALTER TABLE essays ADD COLUMN edit_code VARCHAR(6)")
	if "comments" in tables:
		cols = {c["name"] for c in inspector.get_columns("comments")}
		with target.begin() as conn:
			for column in ("author_grade", "author_class", "author_number"):
				if column not in cols:
					conn.exec_driver_sql(f"ALTER TABLE comments ADD COLUMN {column} VARCHAR(16)")
