"""
Test: AI adapter degrades instead of raising; Gemini JSON parsing.
"""
import asyncio

import httpx
import pytest

from essay_board.gemini_client import GeminiClient, GeminiNotConfiguredError, extract_json_block
from essay_board.schemas import BodyPart, WritingSnapshot
from essay_board.topic_advisor import (
	ASSISTANT_FAILED_MESSAGE,
	MISSING_KEY_MESSAGE,
	REFINE_FAILED_MESSAGE,
	TopicAdvisor,
	build_assistant_prompt,
	build_topic_prompt,
)


class FakeGemini:
	def __init__(self, data=None, text="", error=None):
		self.data = data
		self.text = text
		self.error = error
		self.prompts = []
		self.closed = False

	async def __aenter__(self):
		return self

	async def __aexit__(self, *exc_info):
		self.closed = True

	async def generate_json(self, prompt, schema):
		self.prompts.append(prompt)
		if self.error:
			raise self.error
		return self.data

	async def generate(self, prompt):
		self.prompts.append(prompt)
		if self.error:
			raise self.error
		return self.text


def _unconfigured():
	raise GeminiNotConfiguredError("GEMINI_API_KEY is not configured")


class TestRefineTopic:
	def test_success(self):
		fake = FakeGemini(data={"refinedTopic": " 스마트폰 사용 시간을 정해야 한다 ", "suggestions": ["a", " ", "b", "c", "d"]})
		result = asyncio.run(TopicAdvisor(lambda: fake).refine_topic("스마트폰"))
		assert result.refined_topic == "스마트폰 사용 시간을 정해야 한다"
		assert result.suggestions == ["a", "b", "c"]
		assert "원래 주제: \"스마트폰\"" in fake.prompts[0]
		assert fake.closed

	def test_missing_key(self):
		result = asyncio.run(TopicAdvisor(_unconfigured).refine_topic("스마트폰"))
		assert result.refined_topic == MISSING_KEY_MESSAGE
		assert result.suggestions == []

	def test_network_error(self):
		fake = FakeGemini(error=httpx.ConnectError("down"))
		result = asyncio.run(TopicAdvisor(lambda: fake).refine_topic("스마트폰"))
		assert result.refined_topic == REFINE_FAILED_MESSAGE
		assert result.suggestions == []

	def test_malformed_reply(self):
		fake = FakeGemini(data={"suggestions": "not a list"})
		result = asyncio.run(TopicAdvisor(lambda: fake).refine_topic("스마트폰"))
		assert result.refined_topic == REFINE_FAILED_MESSAGE

	def test_non_list_suggestions_are_dropped(self):
		fake = FakeGemini(data={"refinedTopic": "숙제를 줄이자", "suggestions": "숙제"})
		result = asyncio.run(TopicAdvisor(lambda: fake).refine_topic("숙제"))
		assert result.suggestions == []


class TestAssistant:
	def test_reply(self):
		fake = FakeGemini(text="  서론에서 질문으로 시작해 보세요.  ")
		snapshot = WritingSnapshot(topic="숙제를 줄이자", body=[BodyPart(reason="쉴 시간이 필요해요", source="")])
		reply = asyncio.run(TopicAdvisor(lambda: fake).ask_assistant(snapshot, "서론은 어떻게 써요?"))
		assert reply == "서론에서 질문으로 시작해 보세요."
		assert "쉴 시간이 필요해요" in fake.prompts[0]

	def test_failure(self):
		fake = FakeGemini(error=RuntimeError("boom"))
		reply = asyncio.run(TopicAdvisor(lambda: fake).ask_assistant(WritingSnapshot(), "도와주세요"))
		assert reply == ASSISTANT_FAILED_MESSAGE

	def test_missing_key(self):
		assert asyncio.run(TopicAdvisor(_unconfigured).ask_assistant(WritingSnapshot(), "?")) == MISSING_KEY_MESSAGE


class TestPrompts:
	def test_topic_prompt_demands_a_claim(self):
		prompt = build_topic_prompt("급식")
		assert "~해야 한다" in prompt
		assert "3가지" in prompt

	def test_assistant_prompt_marks_empty_sections(self):
		prompt = build_assistant_prompt(WritingSnapshot(), "?")
		assert "(아직 정하지 않음)" in prompt
		assert "(아직 작성하지 않음)" in prompt


class TestGeminiClient:
	def test_requires_key(self, monkeypatch):
		from essay_board import gemini_client
		monkeypatch.setattr(gemini_client.settings, "gemini_api_key", None)
		with pytest.raises(GeminiNotConfiguredError):
			GeminiClient()

	def test_generate_json_parses_candidate(self, monkeypatch):
		from essay_board import gemini_client
		monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", None)
		seen = {}

		def handler(request):
			seen["body"] = request.content
			seen["key"] = request.url.params.get("key")
			text = '```json\n{"refinedTopic": "숙제를 줄이자", "suggestions": []}\n```'
			return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

		async def scenario():
			client = GeminiClient(api_key="k", base_url="https://gemini.test/generate")
			client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
			async with client:
				return await client.generate_json("prompt", {"type": "OBJECT"})

		data = asyncio.run(scenario())
		assert data == {"refinedTopic": "숙제를 줄이자", "suggestions": []}
		assert seen["key"] == "k"
		assert b"responseMimeType" in seen["body"]

	def test_http_error_without_fallback_raises(self, monkeypatch):
		from essay_board import gemini_client
		monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", None)

		async def scenario():
			client = GeminiClient(api_key="k", base_url="https://gemini.test/generate")
			client._client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
			async with client:
				await client.generate("prompt")

		with pytest.raises(httpx.HTTPStatusError):
			asyncio.run(scenario())


class TestExtractJsonBlock:
	def test_plain(self):
		assert extract_json_block('{"a": 1}') == {"a": 1}

	def test_wrapped_in_prose(self):
		assert extract_json_block('Here you go: {"a": [1, 2]} thanks') == {"a": [1, 2]}

	def test_unparseable(self):
		with pytest.raises(ValueError):
			extract_json_block("no json here")


class TestApiClientDegrades:
	@staticmethod
	def _offline_client():
		from essay_board.api_client import EssayApiClient

		def handler(request):
			raise httpx.ConnectError("offline", request=request)

		return EssayApiClient("http://testserver", transport=httpx.MockTransport(handler))

	def test_refine_topic_offline(self):
		async def scenario():
			async with self._offline_client() as client:
				return await client.refine_topic("스마트폰")

		result = asyncio.run(scenario())
		assert result.refined_topic == REFINE_FAILED_MESSAGE
		assert result.suggestions == []

	def test_assistant_offline(self):
		async def scenario():
			async with self._offline_client() as client:
				return await client.ask_assistant(WritingSnapshot(topic="숙제를 줄이자"), "도와주세요")

		assert asyncio.run(scenario()) == ASSISTANT_FAILED_MESSAGE
