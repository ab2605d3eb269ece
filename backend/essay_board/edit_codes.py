from __future__ import annotations
import secrets
import string

EDIT_CODE_LENGTH = 6
# Uppercase only so a code read aloud or retyped in lowercase still matches
EDIT_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_edit_code() -> str:
	return "".join(secrets.choice(EDIT_CODE_ALPHABET) for _ in range(EDIT_CODE_LENGTH))


def normalize_edit_code(raw: str | None) -> str:
	return (raw or "").strip().upper()


def is_well_formed(code: str) -> bool:
	return len(code) == EDIT_CODE_LENGTH and all(ch in EDIT_CODE_ALPHABET for ch in code)
