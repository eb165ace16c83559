from __future__ import annotations

import asyncio
from typing import Any, List

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from orderbot.actions import ActionName, Stage
from orderbot.config import Settings
from orderbot.models import ClassificationOutcome, ConversationState, HistoryTurn
from orderbot.services.action_registry import ActionRegistry
from orderbot.services.intent_classifier import (
    CORRECTION_INSTRUCTION,
    HALLUCINATION_APOLOGY,
    NO_ACTION_GREETING,
    TROUBLE_UNDERSTANDING,
    IntentClassifier,
)


class FakeLLM:
    def __init__(self, responses: List[Any], *, delay: float = 0.0) -> None:
        self.responses = list(responses)
        self.delay = delay
        self.calls: List[list] = []
        self.bound_tools: list | None = None
        self.bound_kwargs: dict | None = None

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        self.bound_kwargs = kwargs
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0) if self.responses else AIMessage(content="")
        if isinstance(response, Exception):
            raise response
        return response


def _tool_call(name: str, args: dict, call_id: str = "call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


def _make_settings(**overrides: Any) -> Settings:
    values = {"openai_api_key": "test-key", "openai_model": "gpt-test", "classifier_timeout_seconds": 5}
    values.update(overrides)
    return Settings(**values)


def _classifier(registry: ActionRegistry, llm: FakeLLM, **overrides: Any) -> IntentClassifier:
    return IntentClassifier(_make_settings(**overrides), registry, llm=llm)


def test_binds_only_model_palette(registry: ActionRegistry) -> None:
    llm = FakeLLM([])
    _classifier(registry, llm, openai_tool_choice="required")

    names = {tool["function"]["name"] for tool in llm.bound_tools}
    assert names == {str(entry.name) for entry in registry.model_palette()}
    assert llm.bound_kwargs == {"tool_choice": "required"}


def test_classify_success(registry: ActionRegistry) -> None:
    llm = FakeLLM([_tool_call("add_item_by_name", {"name": "Veg Momo", "quantity": 2})])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("add 2 plate veg momo", ConversationState()))

    assert decision.action_name == ActionName.ADD_ITEM_BY_NAME
    assert decision.arguments == {"name": "Veg Momo", "quantity": 2}
    assert decision.outcome == ClassificationOutcome.SUCCESS
    assert len(llm.calls) == 1


def test_prompt_carries_state_and_recent_history(registry: ActionRegistry) -> None:
    llm = FakeLLM([_tool_call("show_food_menu", {})])
    classifier = _classifier(registry, llm, history_limit=2)
    state = ConversationState(
        stage=Stage.CONFIRMING_ORDER,
        history=[
            HistoryTurn(role="user", content="first"),
            HistoryTurn(role="assistant", content="second"),
            HistoryTurn(role="user", content="third"),
        ],
    )

    asyncio.run(classifier.classify("yes", state))

    messages = llm.calls[0]
    assert isinstance(messages[0], SystemMessage)
    assert '"stage": "confirming_order"' in messages[0].content
    assert "first" not in [message.content for message in messages]
    assert [message.content for message in messages[1:3]] == ["second", "third"]
    assert isinstance(messages[-1], HumanMessage)
    assert messages[-1].content == 'User message: "yes"'


def test_hallucinated_tool_is_not_retried(registry: ActionRegistry) -> None:
    llm = FakeLLM([_tool_call("apply_coupon", {"code": "FREE"})])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("give me a discount", ConversationState()))

    assert decision.action_name == ActionName.SEND_TEXT_REPLY
    assert decision.arguments == {"message": HALLUCINATION_APOLOGY}
    assert decision.outcome == ClassificationOutcome.HALLUCINATION_FALLBACK
    assert decision.is_fallback
    assert len(llm.calls) == 1


def test_internal_action_counts_as_hallucination(registry: ActionRegistry) -> None:
    llm = FakeLLM([_tool_call("process_payment", {"method": "COD"})])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("pay cod", ConversationState()))

    assert decision.outcome == ClassificationOutcome.HALLUCINATION_FALLBACK
    assert len(llm.calls) == 1


def test_malformed_arguments_are_retried_once(registry: ActionRegistry) -> None:
    llm = FakeLLM(
        [
            _tool_call("add_item_by_name", {"name": "Veg Momo", "quantity": "two"}, call_id="call_bad"),
            _tool_call("add_item_by_name", {"name": "Veg Momo", "quantity": 2}, call_id="call_ok"),
        ]
    )
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("add two veg momo", ConversationState()))

    assert decision.action_name == ActionName.ADD_ITEM_BY_NAME
    assert decision.arguments == {"name": "Veg Momo", "quantity": 2}
    assert decision.outcome == ClassificationOutcome.RETRIED_SUCCESS
    assert len(llm.calls) == 2

    retry_messages = llm.calls[1]
    assert len(retry_messages) == len(llm.calls[0]) + 2
    assert isinstance(retry_messages[-2], AIMessage)
    assert isinstance(retry_messages[-1], ToolMessage)
    assert retry_messages[-1].tool_call_id == "call_bad"
    assert retry_messages[-1].content == CORRECTION_INSTRUCTION


def test_unparseable_json_is_retried(registry: ActionRegistry) -> None:
    broken = AIMessage(
        content="",
        invalid_tool_calls=[
            {"name": "provide_location", "args": '{"address": "Thamel', "id": "call_x", "error": "bad json"}
        ],
    )
    llm = FakeLLM([broken, _tool_call("provide_location", {"address": "Thamel"})])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("deliver to thamel", ConversationState()))

    assert decision.action_name == ActionName.PROVIDE_LOCATION
    assert decision.outcome == ClassificationOutcome.RETRIED_SUCCESS
    assert len(llm.calls) == 2


def test_two_malformed_responses_exhaust_retry(registry: ActionRegistry) -> None:
    llm = FakeLLM(
        [
            _tool_call("add_item_by_name", {"name": "Veg Momo", "quantity": "two"}),
            _tool_call("add_item_by_name", {"name": "Veg Momo", "quantity": "still two"}),
            _tool_call("show_food_menu", {}),
        ]
    )
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("add two veg momo", ConversationState()))

    assert decision.action_name == ActionName.SEND_TEXT_REPLY
    assert decision.arguments == {"message": TROUBLE_UNDERSTANDING}
    assert decision.outcome == ClassificationOutcome.EXHAUSTED_FALLBACK
    assert len(llm.calls) == 2


def test_transport_error_falls_back_without_retry(registry: ActionRegistry) -> None:
    llm = FakeLLM([RuntimeError("connection reset")])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("menu please", ConversationState()))

    assert decision.outcome == ClassificationOutcome.TRANSPORT_FALLBACK
    assert decision.arguments == {"message": TROUBLE_UNDERSTANDING}
    assert len(llm.calls) == 1


def test_timeout_falls_back(registry: ActionRegistry) -> None:
    llm = FakeLLM([_tool_call("show_food_menu", {})], delay=0.5)
    classifier = _classifier(registry, llm, classifier_timeout_seconds=0.01)

    decision = asyncio.run(classifier.classify("menu", ConversationState()))

    assert decision.outcome == ClassificationOutcome.TRANSPORT_FALLBACK


def test_plain_text_answer_becomes_text_reply(registry: ActionRegistry) -> None:
    llm = FakeLLM([AIMessage(content="Hi there! Want to see our menu?")])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("hello", ConversationState()))

    assert decision.action_name == ActionName.SEND_TEXT_REPLY
    assert decision.arguments == {"message": "Hi there! Want to see our menu?"}
    assert decision.outcome == ClassificationOutcome.NO_ACTION


def test_empty_answer_uses_greeting(registry: ActionRegistry) -> None:
    llm = FakeLLM([AIMessage(content="")])
    classifier = _classifier(registry, llm)

    decision = asyncio.run(classifier.classify("hmm", ConversationState()))

    assert decision.arguments == {"message": NO_ACTION_GREETING}


def test_classifier_without_api_key_is_disabled(settings: Settings, registry: ActionRegistry) -> None:
    classifier = IntentClassifier(settings, registry)

    decision = asyncio.run(classifier.classify("menu", ConversationState()))

    assert not classifier.enabled
    assert decision.outcome == ClassificationOutcome.TRANSPORT_FALLBACK
