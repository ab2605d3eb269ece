from __future__ import annotations
import json
import logging
import os
from typing import Optional, Set
from urllib.parse import quote

from .schemas import Student
from .settings import settings

logger = logging.getLogger(__name__)

LIKED_ESSAYS_PREFIX = "writing-app-liked-essays-"
DEFAULT_KEY = "teacher-or-default"


def identity_key(student: Optional[Student]) -> str:
	if student is None:
		return DEFAULT_KEY
	return f"{student.grade}-{student.class_number}-{student.student_id}-{student.name}"


class LikedEssayStore:
	"""Per-identity set of liked essay ids kept in local JSON files."""

	def __init__(self, directory: Optional[str] = None) -> None:
		self.directory = os.path.expanduser(directory or settings.liked_store_dir)

	def _path(self, key: str) -> str:
		# Percent-encoding keeps distinct identities in distinct files
		safe = quote(key, safe="")
		return os.path.join(self.directory, f"{LIKED_ESSAYS_PREFIX}{safe}.json")

	def load(self, key: str) -> Set[str]:
		path = self._path(key)
		if not os.path.exists(path):
			return set()
		try:
			with open(path, "r", encoding="utf-8") as f:
				data = json.load(f)
		except (OSError, ValueError):
			logger.exception("Failed to read liked essays from %s", path)
			return set()
		if not isinstance(data, list):
			return set()
		return {str(item) for item in data}

	def add(self, key: str, essay_id: str) -> Set[str]:
		liked = self.load(key)
		if essay_id not in liked:
			liked.add(essay_id)
			self._save(key, liked)
		return liked

	def _save(self, key: str, liked: Set[str]) -> None:
		os.makedirs(self.directory, exist_ok=True)
		with open(self._path(key), "w", encoding="utf-8") as f:
			json.dump(sorted(liked), f, ensure_ascii=False)
