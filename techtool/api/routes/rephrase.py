"""
Rephrase route: turns a free-form request into a ticket title + description.

- POST /rephrase: `{ "description": "..." }` -> `{ "taskName", "description", "url" }`.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from techtool.core.auth import Principal, require_allowed_user
from techtool.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rephrase"])


class RephraseRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=16_000)


class RephraseResult(BaseModel):
    """Structured output the model must return."""
    taskName: str = Field(description="The name/title of the task. 5-8 words maximum, action verb first format.")
    description: str = Field(description="A brief description of what the task entails. 1-3 sentences, 30-40 words max.")
    url: str = Field(default="", description="URL from the input if present, otherwise an empty string.")


REPHRASE_SYSTEM_PROMPT = """You are an Ops & QA developer whose responsibility is to review task requests from team members and convert each free-form description into a clear task title and a concise description.

taskName rules:
- 5-8 words maximum.
- Use an action + object format (verb first) e.g. "Refactor Auth Token Handler".
- Remove filler words, make it specific and actionable.

description rules:
- 1-3 short sentences (max ~30-40 words).
- Include scope, key components affected, and the expected outcome when obvious.
- If the input includes environment, priority, or steps, reflect those concisely.
- If information is missing, make a conservative assumption and note it in parentheses (e.g. "(assume backend API)"). Do not ask follow-up questions.

If the input contains a URL, put it in "url"; otherwise set "url" to an empty string."""


def _rephrase(description: str) -> RephraseResult:
    llm = ChatOpenAI(
        model=settings.OPENAI_MODEL,
        api_key=settings.OPENAI_API_KEY,
        max_tokens=512,
    ).with_structured_output(RephraseResult)
    return llm.invoke([
        SystemMessage(content=REPHRASE_SYSTEM_PROMPT),
        HumanMessage(content=description),
    ])


@router.post("/rephrase", response_model=RephraseResult)
def rephrase(
    body: RephraseRequest,
    current_user: Principal = Depends(require_allowed_user),
):
    if not settings.OPENAI_API_KEY:
        raise HTTPException(
            status_code=503,
            detail="OpenAI API key is not configured. Set OPENAI_API_KEY in .env.",
        )
    if not body.description.strip():
        raise HTTPException(status_code=400, detail="Description is required")

    try:
        result = _rephrase(body.description)
    except Exception as e:
        logger.exception("Rephrase failed")
        raise HTTPException(status_code=502, detail=f"Failed to rephrase description: {str(e)}")

    if not result.taskName or not result.description:
        raise HTTPException(status_code=502, detail="Invalid response format from OpenAI")
    return RephraseResult(taskName=result.taskName, description=result.description, url=result.url or "")
