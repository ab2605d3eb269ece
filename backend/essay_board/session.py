"""Session core: one explicit application state and the transitions between screens.

``AppSession`` holds everything a single viewer's session needs (current view,
identity, essay list, liked-set, busy flags) and is only changed through the
coroutines below. The view is a tagged union; each variant carries just the
data its screen renders.

Remote calls go through ``store`` (normally :class:`api_client.EssayApiClient`)
and ``advisor`` (anything with ``refine_topic``/``ask_assistant``). Every view
change bumps a generation counter; a response that comes back after the viewer
has moved on is dropped instead of being written into the new screen.
"""

from __future__ import annotations
import logging
from enum import Enum
from typing import List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field

from .edit_codes import generate_edit_code, is_well_formed, normalize_edit_code
from .errors import SETUP_INSTRUCTIONS, AuthenticationError, StorageNotConfiguredError, StoreError
from .liked_store import LikedEssayStore, identity_key
from .schemas import DEFAULT_GRADE, Comment, CommentCreate, Essay, EssayCreate, Student
from .wizard import StepValidationError, WritingWizard

logger = logging.getLogger(__name__)

TEACHER_DISPLAY_NAME = "선생님"
CODE_ATTEMPTS = 3
DELETE_CONFIRMATION = "정말로 이 글을 삭제하시겠습니까? 삭제된 글은 복구할 수 없습니다."


class Role(str, Enum):
	STUDENT = "student"
	TEACHER = "teacher"


class LandingView(BaseModel):
	kind: Literal["landing"] = "landing"


class StudentInfoView(BaseModel):
	kind: Literal["student-info"] = "student-info"
	error: Optional[str] = None
	# Set when the viewer pressed "write" before telling us who they are
	continue_to_writing: bool = False


class TeacherLoginView(BaseModel):
	kind: Literal["teacher-login"] = "teacher-login"
	error: Optional[str] = None


class GalleryView(BaseModel):
	kind: Literal["gallery"] = "gallery"
	is_loading: bool = False
	error: Optional[str] = None


class WritingView(BaseModel):
	model_config = ConfigDict(arbitrary_types_allowed=True)
	kind: Literal["writing"] = "writing"
	wizard: WritingWizard


class SubmittedView(BaseModel):
	kind: Literal["submitted"] = "submitted"
	edit_code: str


class EditEntryView(BaseModel):
	kind: Literal["edit-entry"] = "edit-entry"
	code: str = ""
	error: Optional[str] = None


class FoundEssayView(BaseModel):
	kind: Literal["found-essay"] = "found-essay"
	essay: Essay


class DetailView(BaseModel):
	kind: Literal["detail"] = "detail"
	essay: Essay
	comments: List[Comment] = Field(default_factory=list)
	comments_loading: bool = False


class SetupRequiredView(BaseModel):
	kind: Literal["setup-required"] = "setup-required"
	message: str
	instructions: List[str] = Field(default_factory=lambda: list(SETUP_INSTRUCTIONS))


View = Union[
	LandingView,
	StudentInfoView,
	TeacherLoginView,
	GalleryView,
	WritingView,
	SubmittedView,
	EditEntryView,
	FoundEssayView,
	DetailView,
	SetupRequiredView,
]


def _public(essay: Essay) -> Essay:
	"""Copy of ``essay`` as the gallery shows it, without the edit code."""
	return essay.model_copy(update={"edit_code": None})


class PendingDelete(BaseModel):
	essay_id: str
	message: str = DELETE_CONFIRMATION
	edit_code: Optional[str] = None


class AppSession:
	def __init__(self, store, *, advisor=None, liked_store: Optional[LikedEssayStore] = None) -> None:
		self.store = store
		self.advisor = advisor or store
		self.liked_store = liked_store or LikedEssayStore()
		self.view: View = LandingView()
		self.role: Optional[Role] = None
		self.student: Optional[Student] = None
		self.teacher_token: Optional[str] = None
		self.essays: List[Essay] = []
		self.liked_ids: Set[str] = set()
		self.notices: List[str] = []
		self.pending_delete: Optional[PendingDelete] = None
		self.is_saving = False
		self.is_finding = False
		# Essay ids whose like request is still in flight
		self.liking_ids: Set[str] = set()
		self.is_commenting = False
		self._generation = 0

	# -- bookkeeping -------------------------------------------------------

	@property
	def is_admin(self) -> bool:
		return self.role == Role.TEACHER and self.teacher_token is not None

	@property
	def current_author_name(self) -> Optional[str]:
		if self.is_admin:
			return TEACHER_DISPLAY_NAME
		return self.student.name if self.student else None

	@property
	def identity_key(self) -> str:
		return identity_key(self.student)

	def is_liked(self, essay_id: str) -> bool:
		return essay_id in self.liked_ids

	def _show(self, view: View) -> int:
		self.view = view
		self.pending_delete = None
		self._generation += 1
		return self._generation

	def _is_current(self, generation: int) -> bool:
		return generation == self._generation

	def _notify(self, message: str) -> None:
		self.notices.append(message)

	def pop_notices(self) -> List[str]:
		notices, self.notices = self.notices, []
		return notices

	def _show_setup_required(self, exc: StorageNotConfiguredError) -> None:
		logger.error("Storage is not configured: %s", exc)
		self._show(SetupRequiredView(message="데이터베이스 설정이 필요합니다."))

	def _replace_essay(self, essay: Essay) -> None:
		self.essays = [essay if e.id == essay.id else e for e in self.essays]
		if isinstance(self.view, DetailView) and self.view.essay.id == essay.id:
			self.view.essay = essay

	def _shift_likes(self, essay_id: str, delta: int) -> None:
		for essay in self.essays:
			if essay.id == essay_id:
				essay.likes = max(essay.likes + delta, 0)
		if isinstance(self.view, DetailView) and self.view.essay.id == essay_id:
			detail = self.view.essay
			if not any(e is detail for e in self.essays):
				detail.likes = max(detail.likes + delta, 0)

	# -- identity ----------------------------------------------------------

	def select_role(self, role: Role) -> None:
		self.role = role
		if role == Role.STUDENT:
			self._show(StudentInfoView())
		else:
			self._show(TeacherLoginView())

	async def start_as_student(self, class_number: str, student_id: str, name: str, grade: str = DEFAULT_GRADE) -> bool:
		view = self.view if isinstance(self.view, StudentInfoView) else StudentInfoView()
		class_number, student_id, name = class_number.strip(), student_id.strip(), name.strip()
		if not (class_number and student_id and name):
			view.error = "모든 정보를 입력해주세요."
			self.view = view
			return False
		self.role = Role.STUDENT
		self.student = Student(grade=grade, class_number=class_number, student_id=student_id, name=name)
		self.liked_ids = self.liked_store.load(self.identity_key)
		if view.continue_to_writing:
			self.start_writing()
		else:
			await self.open_gallery()
		return True

	async def login_teacher(self, password: str) -> bool:
		view = self.view if isinstance(self.view, TeacherLoginView) else TeacherLoginView()
		self.view = view
		try:
			token = await self.store.login_teacher(password)
		except AuthenticationError:
			view.error = "비밀번호가 올바르지 않습니다."
			return False
		except StorageNotConfiguredError as exc:
			self._show_setup_required(exc)
			return False
		except Exception:
			logger.exception("Teacher login failed")
			self._notify("로그인 중 오류가 발생했습니다.")
			return False
		self.role = Role.TEACHER
		self.teacher_token = token
		self.store.set_token(token)
		self.liked_ids = self.liked_store.load(self.identity_key)
		await self.open_gallery()
		return True

	def back_to_landing(self) -> None:
		self.role = None
		self.student = None
		self.teacher_token = None
		self.store.set_token(None)
		self.liked_ids = set()
		self._show(LandingView())

	# -- gallery -----------------------------------------------------------

	async def open_gallery(self) -> None:
		view = GalleryView(is_loading=True)
		generation = self._show(view)
		try:
			essays = await self.store.list_essays()
		except StorageNotConfiguredError as exc:
			if self._is_current(generation):
				self._show_setup_required(exc)
			return
		except Exception:
			logger.exception("Failed to load essays")
			if self._is_current(generation):
				view.error = "데이터를 불러오는 데 실패했습니다."
				view.is_loading = False
			return
		if not self._is_current(generation):
			logger.debug("Dropping stale essay list")
			return
		self.essays = essays
		view.is_loading = False

	async def select_essay(self, essay_id: str) -> None:
		essay = next((e for e in self.essays if e.id == essay_id), None)
		if essay is None:
			self._notify("글을 찾을 수 없습니다.")
			return
		view = DetailView(essay=essay, comments_loading=True)
		generation = self._show(view)
		try:
			comments = await self.store.list_comments(essay_id)
		except Exception:
			logger.exception("Failed to fetch comments for %s", essay_id)
			if self._is_current(generation):
				view.comments_loading = False
				self._notify("댓글을 불러오는 데 실패했습니다.")
			return
		if self._is_current(generation):
			view.comments = comments
			view.comments_loading = False

	async def close_detail(self) -> None:
		await self.open_gallery()

	# -- writing -----------------------------------------------------------

	def start_writing(self) -> None:
		if self.student is None:
			self._show(StudentInfoView(continue_to_writing=True))
			return
		self._show(WritingView(wizard=WritingWizard(self.student)))

	async def refine_topic(self) -> None:
		if not isinstance(self.view, WritingView):
			return
		try:
			await self.view.wizard.refine_topic(self.advisor)
		except StepValidationError as err:
			self.notices.extend(err.problems)

	async def ask_assistant(self, question: str) -> Optional[str]:
		if not isinstance(self.view, WritingView) or not question.strip():
			return None
		return await self.advisor.ask_assistant(self.view.wizard.snapshot(), question.strip())

	async def submit_writing(self) -> Optional[Essay]:
		if not isinstance(self.view, WritingView) or self.is_saving:
			return None
		wizard = self.view.wizard
		try:
			submission = wizard.build_submission()
		except StepValidationError as err:
			self.notices.extend(err.problems)
			return None
		generation = self._generation
		self.is_saving = True
		try:
			if isinstance(submission, EssayCreate):
				essay = await self._create_with_fresh_code(submission)
			else:
				essay = await self.store.update_essay(wizard.edit_code, submission)
		except StorageNotConfiguredError as exc:
			self._show_setup_required(exc)
			return None
		except Exception:
			logger.exception("Saving essay failed")
			self._notify("수정에 실패했습니다." if wizard.edit_mode else "글 저장에 실패했습니다. 다시 시도해주세요.")
			return None
		finally:
			self.is_saving = False
		if wizard.edit_mode:
			self._replace_essay(_public(essay))
			self._notify("글이 성공적으로 수정되었습니다.")
			if self._is_current(generation):
				await self.open_gallery()
		else:
			self.essays.insert(0, _public(essay))
			if self._is_current(generation):
				self._show(SubmittedView(edit_code=essay.edit_code or submission.edit_code))
		return essay

	async def _create_with_fresh_code(self, submission: EssayCreate) -> Essay:
		for _ in range(CODE_ATTEMPTS - 1):
			try:
				return await self.store.create_essay(submission)
			except StoreError as err:
				if err.status_code != 409:
					raise
				logger.warning("Edit code %s already taken, drawing another", submission.edit_code)
				submission = submission.model_copy(update={"edit_code": generate_edit_code()})
		return await self.store.create_essay(submission)

	# -- edit-code recovery ------------------------------------------------

	def open_edit_entry(self) -> None:
		self._show(EditEntryView())

	async def find_by_code(self, raw_code: str) -> Optional[Essay]:
		if not isinstance(self.view, EditEntryView) or self.is_finding:
			return None
		view = self.view
		view.code = raw_code
		code = normalize_edit_code(raw_code)
		if not code:
			view.error = "수정 코드를 입력해주세요."
			return None
		if not is_well_formed(code):
			view.error = "수정 코드는 6자리여야 합니다."
			return None
		view.error = None
		generation = self._generation
		self.is_finding = True
		try:
			found = await self.store.find_essay_by_code(code)
		except StorageNotConfiguredError as exc:
			self._show_setup_required(exc)
			return None
		except Exception:
			logger.exception("Looking up edit code failed")
			self._notify("글을 찾는 중 오류가 발생했습니다.")
			return None
		finally:
			self.is_finding = False
		if not self._is_current(generation):
			return found
		if found is None:
			view.error = "해당 코드를 가진 글을 찾을 수 없습니다."
			return None
		self._show(FoundEssayView(essay=found))
		return found

	def edit_found_essay(self) -> None:
		if isinstance(self.view, FoundEssayView):
			self._show(WritingView(wizard=WritingWizard.for_edit(self.view.essay)))

	# -- deletion ----------------------------------------------------------

	def request_delete(self, essay_id: str) -> bool:
		if isinstance(self.view, FoundEssayView) and self.view.essay.id == essay_id:
			self.pending_delete = PendingDelete(essay_id=essay_id, edit_code=self.view.essay.edit_code)
			return True
		if self.is_admin:
			self.pending_delete = PendingDelete(essay_id=essay_id)
			return True
		self._notify("삭제 권한이 없습니다.")
		return False

	def cancel_pending(self) -> None:
		self.pending_delete = None

	async def confirm_pending(self) -> bool:
		pending, self.pending_delete = self.pending_delete, None
		if pending is None or self.is_saving:
			return False
		self.is_saving = True
		try:
			await self.store.delete_essay(pending.essay_id, edit_code=pending.edit_code)
		except Exception:
			logger.exception("Deleting essay %s failed", pending.essay_id)
			self._notify("글 삭제에 실패했습니다. 다시 시도해주세요.")
			return False
		finally:
			self.is_saving = False
		self.essays = [e for e in self.essays if e.id != pending.essay_id]
		if isinstance(self.view, (DetailView, FoundEssayView)) and self.view.essay.id == pending.essay_id:
			if isinstance(self.view, FoundEssayView):
				self._notify("글이 삭제되었습니다.")
			await self.open_gallery()
		return True

	# -- likes and comments ------------------------------------------------

	async def like(self, essay_id: str) -> bool:
		if essay_id in self.liked_ids or essay_id in self.liking_ids:
			return False
		self.liking_ids.add(essay_id)
		self.liked_ids.add(essay_id)
		self._shift_likes(essay_id, +1)
		try:
			updated = await self.store.increment_like_counter(essay_id)
		except Exception:
			logger.exception("Liking essay %s failed", essay_id)
			self.liked_ids.discard(essay_id)
			self._shift_likes(essay_id, -1)
			self._notify("좋아요 처리에 실패했습니다.")
			return False
		finally:
			self.liking_ids.discard(essay_id)
		try:
			self.liked_store.add(self.identity_key, essay_id)
		except OSError:
			logger.exception("Could not persist liked essay %s", essay_id)
		self._replace_essay(updated)
		return True

	async def add_comment(self, content: str) -> Optional[Comment]:
		if not isinstance(self.view, DetailView) or self.is_commenting:
			return None
		view = self.view
		author = self.current_author_name
		content = content.strip()
		if not author or not content:
			self._notify("의견 내용을 입력해주세요.")
			return None
		meta = {}
		if self.student is not None and not self.is_admin:
			meta = dict(
				author_grade=self.student.grade,
				author_class=self.student.class_number,
				author_number=self.student.student_id,
			)
		generation = self._generation
		self.is_commenting = True
		try:
			comment = await self.store.create_comment(
				view.essay.id, CommentCreate(author_name=author, content=content, **meta)
			)
		except Exception:
			logger.exception("Adding comment failed")
			self._notify("댓글 등록에 실패했습니다.")
			return None
		finally:
			self.is_commenting = False
		if self._is_current(generation):
			view.comments.append(comment)
		return comment
