from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langchain_openai import ChatOpenAI
from langsmith import traceable

from ..actions import ActionName
from ..config import Settings
from ..models import ActionDecision, ClassificationOutcome, ConversationState
from ..prompts.intent_prompt import build_intent_prompt
from ..utils.retry import RetryStatus, retry_bounded
from .action_registry import ActionRegistry
from .errors import MalformedArgumentsError, MalformedDecisionError

logger = logging.getLogger(__name__)

HALLUCINATION_APOLOGY = "I'm sorry, I encountered an internal error. Could you please rephrase that?"
TROUBLE_UNDERSTANDING = "Sorry, I'm having trouble understanding. Could you try again?"
NO_ACTION_GREETING = "How can I help you today?"
CORRECTION_INSTRUCTION = "Error: Invalid JSON format in arguments. Please regenerate with valid JSON."

MAX_ATTEMPTS = 2


def _extract_message_content(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts).strip()
    return ""


def _fallback(message: str, outcome: ClassificationOutcome) -> ActionDecision:
    return ActionDecision(
        action_name=ActionName.SEND_TEXT_REPLY,
        arguments={"message": message},
        outcome=outcome,
    )


class IntentClassifier:
    """
    Maps free text onto exactly one registered action via LLM tool calling.

    ``classify`` never raises: hallucinated tools, exhausted retries, transport
    errors and timeouts all become a ``send_text_reply`` decision.
    """

    def __init__(
        self,
        settings: Settings,
        registry: ActionRegistry,
        *,
        llm: Any | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._prompt = build_intent_prompt()
        self._timeout = settings.classifier_timeout_seconds
        self._history_limit = settings.history_limit
        if llm is None and settings.openai_api_key:
            llm = ChatOpenAI(
                model=settings.openai_model,
                api_key=settings.openai_api_key,
                temperature=settings.openai_temperature,
                timeout=settings.http_timeout_seconds,
                base_url=settings.openai_base_url,
            )
        if llm is None:
            logger.warning("OPENAI_API_KEY is not set; intent classifier answers with fallbacks only")
            self._llm = None
        else:
            self._llm = llm.bind_tools(
                registry.tool_definitions(),
                tool_choice=settings.openai_tool_choice,
            )

    @property
    def enabled(self) -> bool:
        return self._llm is not None

    def build_messages(self, user_text: str, state: ConversationState) -> List[BaseMessage]:
        context_state = state.model_dump(mode="json", exclude={"history"}, exclude_none=True)
        history: List[BaseMessage] = []
        turns = state.history[-self._history_limit:] if self._history_limit > 0 else []
        for turn in turns:
            if turn.role == "user":
                history.append(HumanMessage(content=turn.content))
            else:
                history.append(AIMessage(content=turn.content))
        return self._prompt.format_messages(
            restaurant_name=self._settings.restaurant_name,
            context_state=json.dumps(context_state, ensure_ascii=False),
            history=history,
            message=user_text,
        )

    @traceable(run_type="chain", name="classify_intent")
    async def classify(
        self,
        user_text: str,
        state: ConversationState,
        *,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> ActionDecision:
        log = log or logger
        if self._llm is None:
            return _fallback(TROUBLE_UNDERSTANDING, ClassificationOutcome.TRANSPORT_FALLBACK)
        try:
            decision = await self.decide(user_text, state)
        except MalformedDecisionError as exc:
            log.warning("Classifier output malformed after retry action=%s: %s", exc.action_name, exc)
            return _fallback(TROUBLE_UNDERSTANDING, ClassificationOutcome.EXHAUSTED_FALLBACK)
        except asyncio.TimeoutError:
            log.warning("Classifier timed out after %.1fs", self._timeout)
            return _fallback(TROUBLE_UNDERSTANDING, ClassificationOutcome.TRANSPORT_FALLBACK)
        except Exception as exc:
            log.warning("Classifier call failed: %s", exc, exc_info=True)
            return _fallback(TROUBLE_UNDERSTANDING, ClassificationOutcome.TRANSPORT_FALLBACK)
        log.info("Classified action=%s outcome=%s", decision.action_name, decision.outcome)
        return decision

    async def decide(self, user_text: str, state: ConversationState) -> ActionDecision:
        """
        One completion plus at most one corrective retry.

        Raises ``MalformedDecisionError`` when the retry is malformed too; transport
        errors and timeouts propagate unchanged.
        """

        if self._llm is None:
            raise RuntimeError("Intent classifier is disabled")
        messages = self.build_messages(user_text, state)

        async def attempt(attempt_no: int, previous_error: BaseException | None) -> ActionDecision:
            request = list(messages)
            if isinstance(previous_error, MalformedDecisionError):
                request.extend(self._correction_messages(previous_error))
            response = await asyncio.wait_for(self._llm.ainvoke(request), timeout=self._timeout)
            return self.interpret(response)

        result = await retry_bounded(attempt, max_attempts=MAX_ATTEMPTS, retry_on=(MalformedDecisionError,))
        if result.status is RetryStatus.EXHAUSTED:
            raise result.error
        decision = result.value
        if result.status is RetryStatus.RETRIED_SUCCESS and decision.outcome is ClassificationOutcome.SUCCESS:
            decision = decision.model_copy(update={"outcome": ClassificationOutcome.RETRIED_SUCCESS})
        return decision

    def interpret(self, response: Any) -> ActionDecision:
        """Turn one model response into a decision; malformed arguments raise."""

        content = _extract_message_content(response)
        tool_calls = list(getattr(response, "tool_calls", None) or [])
        invalid_calls = list(getattr(response, "invalid_tool_calls", None) or [])

        if tool_calls:
            call = tool_calls[0]
            name = call.get("name") or ""
            if not self._registry.is_model_action(name):
                logger.warning("Model selected unknown tool %r", name)
                return _fallback(HALLUCINATION_APOLOGY, ClassificationOutcome.HALLUCINATION_FALLBACK)
            try:
                arguments = self._registry.coerce_arguments(name, call.get("args"))
            except MalformedArgumentsError as exc:
                raise MalformedDecisionError(
                    str(exc),
                    action_name=name,
                    ai_message=response,
                    tool_call_id=call.get("id"),
                ) from exc
            return ActionDecision(
                action_name=ActionName(name),
                arguments=arguments,
                assistant_text=content or None,
            )

        if invalid_calls:
            call = invalid_calls[0]
            name = call.get("name") or ""
            if name and not self._registry.is_model_action(name):
                logger.warning("Model selected unknown tool %r", name)
                return _fallback(HALLUCINATION_APOLOGY, ClassificationOutcome.HALLUCINATION_FALLBACK)
            raise MalformedDecisionError(
                call.get("error") or "Tool arguments are not valid JSON",
                action_name=name,
                ai_message=response,
                tool_call_id=call.get("id"),
            )

        return ActionDecision(
            action_name=ActionName.SEND_TEXT_REPLY,
            arguments={"message": content or NO_ACTION_GREETING},
            assistant_text=content or None,
            outcome=ClassificationOutcome.NO_ACTION,
        )

    @staticmethod
    def _correction_messages(error: MalformedDecisionError) -> List[BaseMessage]:
        follow_up: List[BaseMessage] = []
        if isinstance(error.ai_message, BaseMessage):
            follow_up.append(error.ai_message)
        if error.tool_call_id and follow_up:
            follow_up.append(ToolMessage(content=CORRECTION_INSTRUCTION, tool_call_id=error.tool_call_id))
        else:
            follow_up.append(HumanMessage(content=CORRECTION_INSTRUCTION))
        return follow_up
