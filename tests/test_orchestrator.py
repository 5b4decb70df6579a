"""Tests for the response orchestrator."""

import asyncio

from llm.conversation_store import InMemoryConversationStore
from llm.orchestrator import FALLBACK_REPLY
from llm.records import BenefitAccount, ConversationTurn, FollowUpState


def _run(engine, *messages, user_id="patient-1"):
    """Send messages in order, then let background side effects finish."""

    async def scenario():
        results = []
        for message in messages:
            results.append(await engine.orchestrator.handle_message(user_id, message))
        await engine.runner.drain()
        return results

    return asyncio.run(scenario())


class TestNormalTurn:

    def test_reply_uses_selected_context(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="nutrition_lifestyle", reply="Eat small, soft meals.")
        engine = make_engine(provider)

        (result,) = _run(engine, "What should I eat during radiation?")

        assert result.reply == "Eat small, soft meals."
        assert result.severity == "low"
        assert result.context_key == "nutrition_lifestyle"
        assert result.context_name == "Nutrition and Lifestyle Guidance"
        assert result.context_source == "oracle"
        assert result.error is None
        assert not result.follow_up_started
        system = engine.orchestrator.catalog.snapshot.get("nutrition_lifestyle").system_prompt
        assert provider.reply_calls[0]["system"] == system

    def test_turn_is_persisted_in_order(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="general_medical", reply="ok"))
        _run(engine, "first", "second", "third")

        history = asyncio.run(engine.conversations.get_history("patient-1"))
        assert [t.user_message for t in history] == ["first", "second", "third"]
        assert all(t.context_key == "general_medical" for t in history)

    def test_history_window_limits_transcript(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="general_medical", reply="ok")
        engine = make_engine(provider)
        for i in range(7):
            asyncio.run(engine.conversations.append_turn(
                "patient-1", ConversationTurn(user_message=f"msg-{i}", bot_message=f"reply-{i}")
            ))

        _run(engine, "latest")

        prompt = provider.reply_calls[0]["prompt"]
        assert "User: msg-1\n" not in prompt
        assert "User: msg-2\nBot: reply-2" in prompt
        assert "User: msg-6\nBot: reply-6" in prompt
        assert "latest" in prompt

    def test_record_is_read_with_history_window(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="general_medical", reply="ok"))
        windows = []
        original = engine.conversations.get_record

        async def spy(user_id, window=None):
            windows.append(window)
            return await original(user_id, window=window)

        engine.conversations.get_record = spy
        _run(engine, "Hello")
        assert windows == [5]

    def test_selection_failure_uses_keyword_fallback(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="not_a_context", reply="You are not alone.")
        engine = make_engine(provider)

        (result,) = _run(engine, "I'm really scared about my treatment")

        assert result.context_key == "emotional_support"
        assert result.context_source == "fallback"
        assert result.error is None

    def test_context_stats_skip_follow_up_turns(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="general_medical", reply="ok"))
        _run(engine, "a", "b")
        asyncio.run(engine.conversations.append_turn(
            "patient-1", ConversationTurn(user_message="yes", bot_message="How much?")
        ))

        stats = asyncio.run(engine.orchestrator.get_context_stats("patient-1"))
        assert stats == {"general_medical": 2}


class TestSeverityAlerts:

    def test_high_severity_creates_alert(self, make_engine, scripted_provider):
        reply = "Bleeding like this is an emergency. Please go to the hospital now."
        engine = make_engine(scripted_provider(selection="radiotherapy_side_effects", reply=reply))

        (result,) = _run(engine, "I am bleeding heavily")

        assert result.severity == "high"
        alerts = asyncio.run(engine.alerts.list_for_user("patient-1"))
        assert len(alerts) == 1
        assert alerts[0].severity == "high"
        assert alerts[0].message == reply

    def test_medium_severity_creates_alert(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(reply="It would be wise to consult your oncologist."))
        (result,) = _run(engine, "My skin is red")
        assert result.severity == "medium"
        assert len(asyncio.run(engine.alerts.list_for_user("patient-1"))) == 1

    def test_low_severity_creates_no_alert(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(reply="Rest well and stay hydrated."))
        _run(engine, "I feel tired")
        assert asyncio.run(engine.alerts.list_for_user("patient-1")) == []

    def test_alert_failure_does_not_affect_reply(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(reply="This is urgent, please call 112."))

        async def broken_create(alert):
            raise RuntimeError("alert store down")

        engine.alerts.create = broken_create
        (result,) = _run(engine, "I can't breathe")

        assert result.severity == "high"
        assert result.error is None
        assert engine.runner.failures == 1
        # the turn itself is still persisted
        assert len(asyncio.run(engine.conversations.get_history("patient-1"))) == 1


class TestFailurePolicy:

    def test_generation_timeout_returns_safe_reply(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="general_medical", reply_delay=1.0)
        engine = make_engine(provider, selection_timeout=0.05, generation_timeout=0.1)

        (result,) = _run(engine, "Hello")

        assert result.reply == FALLBACK_REPLY
        assert result.severity == "low"
        assert result.context_key == "general_medical"
        assert result.error == "timeout"
        assert "Traceback" not in result.reply

    def test_turn_deadline_returns_timeout(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="general_medical", reply="late", reply_delay=0.3)
        engine = make_engine(provider, turn_timeout=0.1)

        (result,) = _run(engine, "Hello")

        assert result.reply == FALLBACK_REPLY
        assert result.error == "timeout"
        assert asyncio.run(engine.conversations.get_history("patient-1")) == []

    def test_generation_error_returns_safe_reply(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(fail_reply=RuntimeError("500 from upstream")))

        (result,) = _run(engine, "Hello")

        assert result.reply == FALLBACK_REPLY
        assert result.error == "service_error"
        assert "upstream" not in result.reply

    def test_store_failure_returns_safe_reply(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider())

        async def broken_get(user_id, window=None):
            raise RuntimeError("db down")

        engine.conversations.get_record = broken_get
        (result,) = _run(engine, "Hello")
        assert result.error == "service_error"

    def test_disabled_llm_returns_safe_reply(self, make_engine):
        engine = make_engine(None)
        (result,) = _run(engine, "I'm really scared about my treatment")
        assert result.reply == FALLBACK_REPLY
        assert result.context_key == "general_medical"
        assert result.error == "service_error"


class TestFollowUpRouting:

    def test_insurance_question_starts_follow_up(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="insurance_coverage", reply="Ayushman Bharat covers radiotherapy.")
        engine = make_engine(provider)

        (result,) = _run(engine, "Does Ayushman cover my treatment cost?")

        assert result.follow_up_started
        assert result.to_dict()["hasFollowUp"] is True
        assert result.reply.startswith("Ayushman Bharat covers radiotherapy.")
        assert "reply yes or no" in result.reply
        record = asyncio.run(engine.conversations.get_record("patient-1"))
        assert record.pending_follow_up is FollowUpState.AWAITING_CARD_POSSESSION

    def test_fallback_selection_also_starts_follow_up(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="???", reply="Here is how coverage works."))
        (result,) = _run(engine, "Does Ayushman cover my treatment cost?")
        assert result.context_key == "insurance_coverage"
        assert result.follow_up_started

    def test_no_follow_up_when_coverage_known(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="insurance_coverage", reply="Coverage info."))
        asyncio.run(engine.accounts.save_account(BenefitAccount(user_id="patient-1", has_coverage=False)))

        (result,) = _run(engine, "What about insurance?")

        assert not result.follow_up_started
        assert "hasFollowUp" not in result.to_dict()

    def test_pending_follow_up_bypasses_classifier(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="insurance_coverage", reply="Coverage info.")
        engine = make_engine(provider)

        first, second = _run(
            engine,
            "Does Ayushman cover my treatment cost?",
            "What should I eat during radiation? yes I have the card",
        )

        assert first.follow_up_started
        assert second.follow_up_handled
        assert len(provider.selection_calls) == 1
        assert len(provider.reply_calls) == 1
        assert second.context_key is None
        record = asyncio.run(engine.conversations.get_record("patient-1"))
        assert record.pending_follow_up is FollowUpState.AWAITING_USAGE_AMOUNT

    def test_full_follow_up_dialogue(self, make_engine, scripted_provider):
        provider = scripted_provider(selection="insurance_coverage", reply="Coverage info.")
        engine = make_engine(provider)

        _, card, amount = _run(engine, "Is my treatment covered by insurance?", "yes", "10%")

        assert "how much" in card.reply.lower()
        assert "₹50,000" in amount.reply
        account = asyncio.run(engine.accounts.get_account("patient-1"))
        assert account.has_coverage is True
        assert account.amount_used == 50_000
        record = asyncio.run(engine.conversations.get_record("patient-1"))
        assert record.pending_follow_up is FollowUpState.NONE

        history = asyncio.run(engine.orchestrator.get_history("patient-1"))
        assert [t.user_message for t in history] == ["Is my treatment covered by insurance?", "yes", "10%"]
        assert [t.context_key for t in history] == ["insurance_coverage", None, None]
        assert all(t.severity == "low" for t in history[1:])

    def test_negative_answer_ends_follow_up(self, make_engine, scripted_provider):
        engine = make_engine(scripted_provider(selection="insurance_coverage", reply="Coverage info."))
        _, answer, after = _run(engine, "insurance?", "no", "insurance again?")

        account = asyncio.run(engine.accounts.get_account("patient-1"))
        assert account.has_coverage is False
        assert answer.follow_up_handled
        # coverage is now known, so the next insurance question does not restart the flow
        assert not after.follow_up_started
        assert not after.follow_up_handled


def test_in_memory_record_window():
    store = InMemoryConversationStore()
    for i in range(8):
        asyncio.run(store.append_turn("u1", ConversationTurn(user_message=f"q{i}", bot_message="ok")))

    record = asyncio.run(store.get_record("u1", window=3))
    assert [t.user_message for t in record.turns] == ["q5", "q6", "q7"]
    assert len(asyncio.run(store.get_record("u1")).turns) == 8
    assert asyncio.run(store.get_record("u1", window=0)).turns == []
