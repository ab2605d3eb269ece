"""Three-step writing wizard: topic, structure, review.

The same wizard drives first-time writing and edit-by-code. Edit mode is fixed
when the wizard is built and only changes what the final submit produces.
"""

from __future__ import annotations
import logging
from enum import IntEnum
from typing import List, Optional, Union

from .edit_codes import generate_edit_code
from .schemas import BodyPart, Essay, EssayCreate, EssayUpdate, Student, TopicSuggestions, WritingSnapshot
from .topic_advisor import REFINE_FAILED_MESSAGE

logger = logging.getLogger(__name__)

MIN_SECTION_LENGTH = 100
MIN_ESSAY_LENGTH = 500
PARAGRAPH_SEPARATOR = "\n\n"


class Step(IntEnum):
	TOPIC = 1
	STRUCTURE = 2
	REVIEW = 3


class StepValidationError(ValueError):
	def __init__(self, step: Step, problems: List[str]) -> None:
		super().__init__("; ".join(problems))
		self.step = step
		self.problems = problems


def compose_full_text(introduction: str, body: List[BodyPart], conclusion: str) -> str:
	body_text = PARAGRAPH_SEPARATOR.join(part.reason for part in body)
	return f"{introduction}{PARAGRAPH_SEPARATOR}{body_text}{PARAGRAPH_SEPARATOR}{conclusion}"


class WritingWizard:
	def __init__(self, student: Optional[Student] = None, *, edit_code: Optional[str] = None) -> None:
		if student is None and edit_code is None:
			raise ValueError("a new essay needs the writer's identity")
		self.student = student
		self._edit_code = edit_code
		self.step = Step.TOPIC
		self.topic = ""
		self.refined_topic = ""
		self.suggestions: List[str] = []
		self.introduction = ""
		self.body: List[BodyPart] = [BodyPart()]
		self.conclusion = ""
		self.draft = ""
		self.is_refining = False

	@classmethod
	def for_edit(cls, essay: Essay) -> "WritingWizard":
		if not essay.edit_code:
			raise ValueError("editing requires the essay's edit code")
		wizard = cls(edit_code=essay.edit_code)
		wizard.topic = essay.topic
		wizard.introduction = essay.introduction
		wizard.body = [part.model_copy() for part in essay.body] or [BodyPart()]
		wizard.conclusion = essay.conclusion
		wizard.draft = essay.full_text
		return wizard

	@property
	def edit_mode(self) -> bool:
		return self._edit_code is not None

	@property
	def edit_code(self) -> Optional[str]:
		return self._edit_code

	@property
	def effective_topic(self) -> str:
		return self.refined_topic if self.refined_topic.strip() else self.topic

	# -- body parts --------------------------------------------------------

	def add_body_part(self) -> None:
		self.body.append(BodyPart())

	def update_body_part(self, index: int, *, reason: Optional[str] = None, source: Optional[str] = None) -> None:
		part = self.body[index]
		if reason is not None:
			part.reason = reason
		if source is not None:
			part.source = source

	def remove_body_part(self, index: int) -> None:
		if len(self.body) <= 1:
			raise StepValidationError(Step.STRUCTURE, ["최소 한 개의 근거는 필요합니다."])
		del self.body[index]

	# -- validation and transitions ---------------------------------------

	def problems_for(self, step: Step) -> List[str]:
		problems: List[str] = []
		if step == Step.TOPIC:
			if not self.effective_topic.strip():
				problems.append("주제를 입력해주세요.")
		elif step == Step.STRUCTURE:
			if len(self.introduction.strip()) < MIN_SECTION_LENGTH:
				problems.append(f"서론은 {MIN_SECTION_LENGTH}자 이상 써주세요.")
			for i, part in enumerate(self.body, start=1):
				if not part.reason.strip() or not part.source.strip():
					problems.append(f"근거 {i}의 내용과 출처를 모두 입력해주세요.")
			if len(self.conclusion.strip()) < MIN_SECTION_LENGTH:
				problems.append(f"결론은 {MIN_SECTION_LENGTH}자 이상 써주세요.")
		elif step == Step.REVIEW:
			length = len(self.draft.strip())
			if length < MIN_ESSAY_LENGTH:
				problems.append(f"글자 수가 부족합니다. (현재 {length}자 / {MIN_ESSAY_LENGTH}자 이상)")
		return problems

	def can_advance(self) -> bool:
		return not self.problems_for(self.step)

	def next_step(self) -> Step:
		if self.step == Step.REVIEW:
			return self.step
		problems = self.problems_for(self.step)
		if problems:
			raise StepValidationError(self.step, problems)
		if self.step == Step.STRUCTURE:
			# Overwrites any hand edits made to the draft on an earlier visit
			self.draft = compose_full_text(self.introduction, self.body, self.conclusion)
		self.step = Step(self.step + 1)
		return self.step

	def previous_step(self) -> Step:
		if self.step > Step.TOPIC:
			self.step = Step(self.step - 1)
		return self.step

	def build_submission(self) -> Union[EssayCreate, EssayUpdate]:
		if self.step != Step.REVIEW:
			raise StepValidationError(self.step, ["마지막 단계에서 제출할 수 있습니다."])
		problems = self.problems_for(Step.REVIEW)
		if problems:
			raise StepValidationError(Step.REVIEW, problems)
		fields = dict(
			topic=self.effective_topic.strip(),
			introduction=self.introduction,
			body=[part.model_copy() for part in self.body],
			conclusion=self.conclusion,
			full_text=self.draft,
		)
		if self.edit_mode:
			return EssayUpdate(**fields)
		return EssayCreate(**fields, student=self.student, edit_code=generate_edit_code())

	# -- AI help -----------------------------------------------------------

	async def refine_topic(self, advisor) -> Optional[TopicSuggestions]:
		if self.is_refining:
			return None
		if not self.topic.strip():
			raise StepValidationError(Step.TOPIC, ["먼저 주제를 입력해주세요."])
		self.is_refining = True
		self.refined_topic = ""
		self.suggestions = []
		try:
			result = await advisor.refine_topic(self.topic)
		except Exception:
			# Advisors are not supposed to raise; keep the wizard usable if one does
			logger.exception("Topic advisor raised")
			result = TopicSuggestions(refined_topic=REFINE_FAILED_MESSAGE, suggestions=[])
		finally:
			self.is_refining = False
		self.refined_topic = result.refined_topic
		self.suggestions = list(result.suggestions)
		return result

	def choose_suggestion(self, suggestion: str) -> None:
		self.refined_topic = suggestion

	def snapshot(self) -> WritingSnapshot:
		return WritingSnapshot(
			topic=self.effective_topic,
			introduction=self.introduction,
			body=[part.model_copy() for part in self.body],
			conclusion=self.conclusion,
		)
