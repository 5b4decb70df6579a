"""
Response Orchestrator for the RadioCare chatbot.

Runs one chat turn from patient message to reply.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from collections import Counter
from typing import Any, Dict, List, Optional

from contexts.catalog import ContextCatalog, DEFAULT_CONTEXT_KEY
from contexts.selector import ContextSelector, is_insurance_related
from contexts.severity import Severity, classify_severity

from .background import BackgroundTaskRunner
from .conversation_store import ConversationStore
from .oracle import OracleClient, OracleTimeoutError
from .prompt_templates import PromptTemplates
from .records import ConversationRecord, ConversationTurn, FollowUpState

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble responding right now. Please try again in a moment. "
    "If you are worried about a symptom, please contact your radiotherapy care team directly."
)


@dataclass
class TurnResult:
    """Outcome of one chat turn."""
    reply: str
    severity: str = Severity.LOW.value
    context_key: Optional[str] = None
    context_name: Optional[str] = None
    processing_time_ms: float = 0.0
    follow_up_started: bool = False
    follow_up_handled: bool = False
    context_source: Optional[str] = None
    error: Optional[str] = None  # timeout | service_error

    def to_dict(self) -> Dict[str, Any]:
        """HTTP payload (the error tag stays internal)."""
        data = {
            "response": self.reply,
            "severity": self.severity,
            "contextUsed": self.context_key,
            "contextName": self.context_name,
            "processingTime": self.processing_time_ms,
        }
        if self.follow_up_started:
            data["hasFollowUp"] = True
        return data


class ResponseOrchestrator:
    """
    Orchestrates a chat turn.

    Pipeline:
    1. Load the user's conversation record
    2. If a coverage follow-up is pending, answer it and stop
    3. Flatten the last few turns into a transcript
    4. Select the response context
    5. Generate the reply with the context's system prompt
    6. Classify reply severity
    7. Alert clinicians for medium/high severity (background)
    8. Persist the turn (background)
    9. Start the coverage follow-up for insurance questions
    """

    def __init__(
        self,
        catalog: ContextCatalog,
        selector: ContextSelector,
        oracle: OracleClient,
        conversation_store: ConversationStore,
        runner: BackgroundTaskRunner,
        alert_manager: Optional[Any] = None,
        follow_up: Optional[Any] = None,
        history_window: int = 5,
        turn_timeout: Optional[float] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            catalog: Context catalog
            selector: Context selector (LLM with keyword fallback)
            oracle: Text-completion gateway
            conversation_store: Conversation persistence
            runner: Runner for background side effects
            alert_manager: Clinician alerting (``create_alert``)
            follow_up: Coverage follow-up flow (``handle``, ``should_start``)
            history_window: Number of recent turns used as prompt context
            turn_timeout: Deadline in seconds for the whole turn (None for no deadline)
        """
        self.catalog = catalog
        self.selector = selector
        self.oracle = oracle
        self.conversation_store = conversation_store
        self.runner = runner
        self.alert_manager = alert_manager
        self.history_window = history_window
        self.turn_timeout = turn_timeout
        self._follow_up = follow_up

    def set_follow_up(self, follow_up: Any):
        """Set the coverage follow-up flow."""
        self._follow_up = follow_up

    async def handle_message(self, user_id: str, message: str) -> TurnResult:
        """
        Process one patient message.

        Never raises: any failure becomes a safe
        apologetic reply tagged ``timeout`` or ``service_error``.

        Args:
            user_id: Patient identifier
            message: Patient message

        Returns:
            Turn result
        """
        start_time = time.time()

        try:
            return await asyncio.wait_for(
                self._run_turn(user_id, message, start_time), timeout=self.turn_timeout
            )
        except Exception as e:
            error = "timeout" if isinstance(e, (OracleTimeoutError, asyncio.TimeoutError)) else "service_error"
            logger.error(f"Chat turn failed for user {user_id} ({error}): {e}", exc_info=True)
            default = self.catalog.snapshot.resolve(DEFAULT_CONTEXT_KEY)
            return TurnResult(
                reply=FALLBACK_REPLY,
                severity=Severity.LOW.value,
                context_key=default.key,
                context_name=default.name,
                processing_time_ms=self._elapsed(start_time),
                error=error,
            )

    async def _run_turn(self, user_id: str, message: str, start_time: float) -> TurnResult:
        # Step 1
        record = await self.conversation_store.get_record(user_id, window=self.history_window)
        if record is None:
            record = ConversationRecord(user_id=user_id)

        # Step 2
        if record.pending_follow_up.is_pending and self._follow_up is not None:
            return await self._continue_follow_up(record, message, start_time)

        return await self._answer(record, message, start_time)

    async def _answer(self, record: ConversationRecord, message: str, start_time: float) -> TurnResult:
        user_id = record.user_id
        snapshot = self.catalog.snapshot

        # Step 3
        transcript = PromptTemplates.format_transcript(record.recent_turns(self.history_window))

        # Step 4
        selection = await self.selector.select(message, transcript, snapshot=snapshot)
        context = snapshot.resolve(selection.key)

        # Step 5
        prompt = PromptTemplates.build_response_prompt(message, transcript)
        reply = (await self.oracle.respond(prompt, system=context.system_prompt)).strip()

        # Step 6
        severity = classify_severity(reply)

        # Step 7
        if severity.needs_alert and self.alert_manager is not None:
            self.runner.spawn(
                self.alert_manager.create_alert(user_id, severity, reply),
                name=f"alert:{user_id}",
            )

        # Step 9 (before step 8: the stored reply includes the follow-up question)
        follow_up_started = False
        if (
            self._follow_up is not None
            and is_insurance_related(context.key)
            and not record.pending_follow_up.is_pending
            and await self._follow_up.should_start(user_id)
        ):
            await self.conversation_store.set_pending_follow_up(
                user_id, FollowUpState.AWAITING_CARD_POSSESSION
            )
            reply = f"{reply}\n\n{self._follow_up.opening_question()}"
            follow_up_started = True
            logger.info(f"Coverage follow-up started for user {user_id}")

        processing_time = self._elapsed(start_time)

        # Step 8
        turn = ConversationTurn(
            user_message=message,
            bot_message=reply,
            severity=severity.value,
            context_key=context.key,
            context_name=context.name,
            processing_time_ms=processing_time,
        )
        self._persist_turn(user_id, turn)

        return TurnResult(
            reply=reply,
            severity=severity.value,
            context_key=context.key,
            context_name=context.name,
            processing_time_ms=processing_time,
            follow_up_started=follow_up_started,
            context_source=selection.source,
        )

    async def _continue_follow_up(
        self, record: ConversationRecord, message: str, start_time: float
    ) -> TurnResult:
        """Answer a pending follow-up step in place of the normal pipeline."""
        user_id = record.user_id
        result = await self._follow_up.handle(user_id, record.pending_follow_up, message)
        await self.conversation_store.set_pending_follow_up(user_id, result.next_state)
        logger.info(
            f"Follow-up for user {user_id}: {record.pending_follow_up.value} -> {result.next_state.value}"
        )

        processing_time = self._elapsed(start_time)
        self._persist_turn(
            user_id,
            ConversationTurn(
                user_message=message,
                bot_message=result.reply,
                severity=Severity.LOW.value,
                processing_time_ms=processing_time,
            ),
        )
        return TurnResult(
            reply=result.reply,
            processing_time_ms=processing_time,
            follow_up_handled=True,
        )

    def _persist_turn(self, user_id: str, turn: ConversationTurn):
        self.runner.spawn(
            self.conversation_store.append_turn(user_id, turn),
            name=f"persist-turn:{user_id}",
        )

    @staticmethod
    def _elapsed(start_time: float) -> float:
        return round((time.time() - start_time) * 1000, 2)

    async def get_history(self, user_id: str) -> List[ConversationTurn]:
        """All turns of the user, oldest first."""
        return await self.conversation_store.get_history(user_id)

    async def get_context_stats(self, user_id: str) -> Dict[str, int]:
        """How often each context answered this user (follow-up turns excluded)."""
        turns = await self.conversation_store.get_history(user_id)
        return dict(Counter(t.context_key for t in turns if t.context_key))

    def available_contexts(self) -> List[Dict[str, Any]]:
        return self.catalog.snapshot.summaries()
