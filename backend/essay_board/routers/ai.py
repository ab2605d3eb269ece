from fastapi import APIRouter, Depends, HTTPException

from ..schemas import AssistantReply, AssistantRequest, TopicRequest, TopicSuggestions
from ..topic_advisor import TopicAdvisor

router = APIRouter(prefix="/ai", tags=["ai"])


def get_advisor() -> TopicAdvisor:
	return TopicAdvisor()


@router.post("/topic", response_model=TopicSuggestions)
async def refine_topic(req: TopicRequest, advisor: TopicAdvisor = Depends(get_advisor)):
	topic = (req.topic or "").strip()
	if not topic:
		raise HTTPException(status_code=400, detail="먼저 주제를 입력해주세요.")
	return await advisor.refine_topic(topic)


@router.post("/assistant", response_model=AssistantReply)
async def ask_assistant(req: AssistantRequest, advisor: TopicAdvisor = Depends(get_advisor)):
	question = (req.question or "").strip()
	if not question:
		raise HTTPException(status_code=400, detail="question is required")
	return AssistantReply(reply=await advisor.ask_assistant(req.snapshot, question))
