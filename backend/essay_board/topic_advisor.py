"""AI help for the writing wizard.

Both entry points return a usable value no matter what happens upstream: the
wizard has to keep working when the key is missing or Gemini is down.
"""

from __future__ import annotations
import logging
from typing import Callable, List, Optional

from .gemini_client import GeminiClient, GeminiNotConfiguredError
from .schemas import TopicSuggestions, WritingSnapshot

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

MISSING_KEY_MESSAGE = "AI 기능을 사용하려면 API 키가 필요합니다."
REFINE_FAILED_MESSAGE = "AI 추천 주제 생성 중 오류가 발생했습니다. 잠시 후 다시 시도해 주세요."
ASSISTANT_FAILED_MESSAGE = "AI 도우미가 지금은 답변할 수 없습니다. 잠시 후 다시 질문해 주세요."

TOPIC_RESPONSE_SCHEMA = {
	"type": "OBJECT",
	"properties": {
		"refinedTopic": {"type": "STRING", "description": "원래 주제를 다듬은 버전입니다."},
		"suggestions": {
			"type": "ARRAY",
			"items": {"type": "STRING"},
			"description": "대안으로 제시하는 3가지 새로운 주제입니다.",
		},
	},
	"required": ["refinedTopic", "suggestions"],
}


def build_topic_prompt(raw_topic: str) -> str:
	return (
		"초등학교 6학년 학생이 주장하는 글(논설문)의 주제를 작성했습니다.\n"
		"모든 주제는 명확한 '주장'이 드러나도록 \"~해야 한다\", \"~하자\"와 같은 서술로 끝나야 합니다. "
		"설명하는 듯한 제목은 피해주세요.\n\n"
		"1. 원래 주제를 더 명확하고, 흥미로우며, 논리적인 '주장'으로 다듬어 주세요.\n"
		"2. 원래 주제와 관련하여, 학생들이 흥미를 가질 만한 새로운 대안 '주장' 3가지를 제안해주세요.\n\n"
		f"원래 주제: \"{raw_topic}\"\n\n"
		"JSON 형식으로 응답해주세요."
	)


def build_assistant_prompt(snapshot: WritingSnapshot, question: str) -> str:
	reasons = "\n".join(
		f"- 근거 {i}: {part.reason or '(비어 있음)'} (출처: {part.source or '없음'})"
		for i, part in enumerate(snapshot.body, start=1)
	) or "- (아직 작성하지 않음)"
	return (
		"당신은 초등학교 6학년 학생의 주장하는 글쓰기를 돕는 친절한 선생님입니다.\n"
		"학생이 쓰고 있는 글을 대신 써 주지 말고, 스스로 고칠 수 있도록 짧고 구체적인 조언을 해 주세요.\n\n"
		f"주제: {snapshot.topic or '(아직 정하지 않음)'}\n"
		f"서론: {snapshot.introduction or '(아직 작성하지 않음)'}\n"
		f"본론:\n{reasons}\n"
		f"결론: {snapshot.conclusion or '(아직 작성하지 않음)'}\n\n"
		f"학생의 질문: {question}"
	)


def _clean_suggestions(raw: object) -> List[str]:
	if not isinstance(raw, list):
		return []
	cleaned = [str(item).strip() for item in raw if str(item).strip()]
	return cleaned[:MAX_SUGGESTIONS]


class TopicAdvisor:
	def __init__(self, client_factory: Optional[Callable[[], GeminiClient]] = None) -> None:
		self._client_factory = client_factory or GeminiClient

	async def refine_topic(self, raw_topic: str) -> TopicSuggestions:
		try:
			client = self._client_factory()
		except GeminiNotConfiguredError:
			logger.warning("Topic refinement requested but GEMINI_API_KEY is not set")
			return TopicSuggestions(refined_topic=MISSING_KEY_MESSAGE, suggestions=[])
		try:
			async with client:
				data = await client.generate_json(build_topic_prompt(raw_topic), TOPIC_RESPONSE_SCHEMA)
			refined = str(data.get("refinedTopic") or "").strip()
			if not refined:
				raise ValueError("Gemini returned an empty refinedTopic")
			return TopicSuggestions(refined_topic=refined, suggestions=_clean_suggestions(data.get("suggestions")))
		except Exception:
			logger.exception("Error getting topic suggestions from Gemini")
			return TopicSuggestions(refined_topic=REFINE_FAILED_MESSAGE, suggestions=[])

	async def ask_assistant(self, snapshot: WritingSnapshot, question: str) -> str:
		try:
			client = self._client_factory()
		except GeminiNotConfiguredError:
			logger.warning("Assistant requested but GEMINI_API_KEY is not set")
			return MISSING_KEY_MESSAGE
		try:
			async with client:
				reply = await client.generate(build_assistant_prompt(snapshot, question))
			return reply.strip() or ASSISTANT_FAILED_MESSAGE
		except Exception:
			logger.exception("Error getting assistant reply from Gemini")
			return ASSISTANT_FAILED_MESSAGE
