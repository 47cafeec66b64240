"""
ElderEase Assistant: answers site questions from the knowledge base by
relaying the best-matching context to an OpenAI chat completion.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from openai import AsyncOpenAI

from elderease.config import OpenAISettings
from elderease.exceptions import (
    ChatbotConfigurationError,
    ChatbotUpstreamError,
    ChatbotValidationError,
)
from elderease.knowledge_base import (
    KNOWLEDGE_BASE,
    EntryScorer,
    KeywordOverlapScorer,
    KnowledgeEntry,
    rank_entries,
)
from elderease.logger import logger

CONTEXT_ENTRIES = 8

MESSAGE_REQUIRED = "Message is required."
NOT_CONFIGURED_MESSAGE = "Chatbot is not configured yet. Please try again later."
UPSTREAM_FAILURE_MESSAGE = (
    "Sorry, I'm having trouble answering right now. "
    "Please try again in a little while."
)
REDIRECT_REPLY = (
    "I'm here to answer questions about ElderEase, our services, volunteers, "
    "and how to use this website. Could you ask something about our services "
    "or how to get support?"
)

SYSTEM_PROMPT = """You are ElderEase Assistant, a warm and patient helper for elderly users and their guardians on the ElderEase website.

RULES:
1. Answer ONLY from the ElderEase website context supplied in this conversation. Never use outside knowledge and never guess.
2. Questions about ElderEase services, volunteers and ratings, pricing, notifications, and how to use or navigate the site are in scope.
3. Never invent volunteer names, ratings, addresses, phone numbers, or visit counts. If a detail is not in the context, say you cannot see it and suggest the ElderEase page where it can be checked.
4. If a question is unrelated to ElderEase, kindly say you can only help with ElderEase, its services, volunteers, and this website, and invite a question about those.
5. Keep earlier turns in mind so the conversation stays coherent.

STYLE:
- Paraphrase the site content to fit the question; do not recite it.
- Use short paragraphs, simple words, and a calm, reassuring tone.
- When it helps, end with a gentle suggestion for the next step on ElderEase."""

USER_PROMPT_TEMPLATE = """Here is information from the ElderEase website:

{context}

The user is now asking:
{question}

Answer ONLY using the website information above. If something is missing, say you are not sure and gently redirect back to the site."""


@dataclass(frozen=True)
class ChatTurn:
    role: Literal["user", "assistant"]
    text: str


def build_context(entries: Sequence[KnowledgeEntry]) -> str:
    return "\n\n".join(
        f"Context {idx}:\n{entry.content}" for idx, entry in enumerate(entries, start=1)
    )


class ChatbotService:
    """Stateless relay; conversation state lives entirely in ``history``."""

    def __init__(
        self,
        settings: OpenAISettings,
        *,
        knowledge_base: Sequence[KnowledgeEntry] = KNOWLEDGE_BASE,
        scorer: EntryScorer | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.settings = settings
        self.knowledge_base = knowledge_base
        self.scorer = scorer or KeywordOverlapScorer()
        self._client = client

        if not settings.api_key and client is None:
            logger.warning(
                "OPENAI_API_KEY is not set; the chatbot will answer with an error "
                "until it is configured"
            )

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.settings.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                timeout=self.settings.request_timeout,
                max_retries=0,
            )
        return self._client

    def build_messages(
        self, question: str, history: Sequence[ChatTurn], context: str
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(
            {"role": turn.role, "content": turn.text} for turn in history if turn.text
        )
        messages.append(
            {
                "role": "user",
                "content": USER_PROMPT_TEMPLATE.format(
                    context=context, question=question
                ),
            }
        )
        return messages

    async def answer(self, message: str, history: Sequence[ChatTurn] = ()) -> str:
        question = (message or "").strip()
        if not question:
            raise ChatbotValidationError(MESSAGE_REQUIRED)

        ranked = rank_entries(
            question, self.knowledge_base, self.scorer, limit=CONTEXT_ENTRIES
        )
        logger.debug(
            "Ranked knowledge base",
            entries=[entry.id for entry, _ in ranked],
            scores=[score for _, score in ranked],
        )

        if not self.configured:
            logger.error("Chatbot request rejected: OPENAI_API_KEY is not set")
            raise ChatbotConfigurationError(NOT_CONFIGURED_MESSAGE)

        messages = self.build_messages(
            question, history, build_context([entry for entry, _ in ranked])
        )

        try:
            completion = await self._get_client().chat.completions.create(
                model=self.settings.model_name,
                messages=messages,
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
            )
        except Exception as e:
            logger.exception(
                "Chatbot completion failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ChatbotUpstreamError(UPSTREAM_FAILURE_MESSAGE, original_error=e) from e

        reply = ""
        if completion.choices:
            reply = (completion.choices[0].message.content or "").strip()
        return reply or REDIRECT_REPLY
