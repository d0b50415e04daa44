"""Guided budgeting conversation.

A conversation is Open until a budget is generated, then Completed. Every
turn persists the user message first, re-reads the full history and decides
whether to keep chatting or to ask the model for a budget. Greeting and
chat failures fall back to scripted replies; budget generation failures are
raised, because a half-valid budget must never be stored.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from loguru import logger

from aira.config import Settings
from aira.db.repository import BudgetRepository, ConversationRepository, MessageRepository
from aira.errors import (
    BudgetGenerationError,
    ConflictError,
    SalaryFormatError,
    UpstreamError,
    ValidationFailure,
)
from aira.llm import prompts
from aira.llm.extractor import extract_budget_analysis
from aira.llm.gateway import ModelGateway
from aira.models.schemas import (
    Budget,
    BudgetAnalysis,
    Conversation,
    Message,
    Role,
    TurnResult,
    utcnow,
)
from aira.utils.text import format_rupiah, requests_budget, validate_salary


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """First instant of the month of ``now`` and the last second before the next."""
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 12:
        next_month = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_month = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    return start, next_month - timedelta(seconds=1)


def build_budget_records(
    account_id: int, analysis: BudgetAnalysis, now: datetime | None = None
) -> list[Budget]:
    start_date, end_date = month_bounds(now or utcnow())
    return [
        Budget(
            account_id=account_id,
            category=cat.name,
            amount=cat.amount,
            period="monthly",
            start_date=start_date,
            end_date=end_date,
            description=cat.description,
        )
        for cat in analysis.categories
    ]


def format_budget_summary(budgets: Sequence[Budget], analysis: BudgetAnalysis) -> str:
    lines = [prompts.SUMMARY_HEADER, ""]
    for b in budgets:
        lines.append(f"{prompts.category_emoji(b.category)} {b.category}: {format_rupiah(b.amount)}")
    lines.append("")
    if analysis.analysis:
        lines.append(f"💡 {analysis.analysis}")
        lines.append("")
    lines.append(prompts.SUMMARY_FOOTER)
    return "\n".join(lines)


class ConversationService:
    def __init__(
        self,
        conversations: ConversationRepository,
        messages: MessageRepository,
        budgets: BudgetRepository,
        gateway: ModelGateway,
        settings: Settings,
    ):
        self.conversations = conversations
        self.messages = messages
        self.budgets = budgets
        self.gateway = gateway
        self.settings = settings

    def _save_message(self, conversation: Conversation, role: Role, content: str) -> Message:
        return self.messages.create(
            Message(conversation_id=conversation.id, role=role, content=content)
        )

    async def start_conversation(self, account_id: int) -> tuple[Conversation, str]:
        if self.conversations.get_open_by_account(account_id) is not None:
            raise ConflictError(
                "user already has an active conversation, complete or reset it first"
            )

        conversation = self.conversations.create(
            Conversation(account_id=account_id, session_id=str(uuid.uuid4()))
        )
        logger.info("Started conversation {} for account {}", conversation.session_id, account_id)

        try:
            greeting = await self.gateway.generate_with_retry(prompts.PERSONA_PROMPT, [])
        except UpstreamError as e:
            logger.warning("Greeting generation failed, using fallback: {}", e)
            greeting = prompts.FALLBACK_GREETING

        self._save_message(conversation, "assistant", greeting)
        return conversation, greeting

    def detect_budget_intent(self, user_text: str, messages: Sequence[Message]) -> bool:
        """Generate when the user asks for it, or once the conversation is long
        enough that it should not stall any further."""
        if requests_budget(user_text):
            return True
        return len(messages) >= self.settings.intent_message_threshold

    async def process_message(self, session_id: str, user_text: str) -> TurnResult:
        conversation = self.conversations.get_by_session(session_id)

        if conversation.completed_at is not None:
            return TurnResult(reply=prompts.CONVERSATION_FINISHED_REPLY, completed=True)

        self._save_message(conversation, "user", user_text)
        history = self.messages.list_by_conversation(conversation.id)

        budgets: list[Budget] = []
        if self.detect_budget_intent(user_text, history) and not conversation.budget_generated:
            budgets, reply = await self._generate_budget(conversation, history)
        else:
            reply = await self._continue(history)

        self._save_message(conversation, "assistant", reply)
        return TurnResult(
            reply=reply,
            completed=conversation.completed_at is not None,
            budgets=budgets,
        )

    async def _continue(self, history: Sequence[Message]) -> str:
        try:
            return await self.gateway.generate_with_retry(prompts.PERSONA_PROMPT, history)
        except UpstreamError as e:
            logger.warning("Chat reply failed, using fallback: {}", e)
            return prompts.FALLBACK_REPLY

    async def _generate_budget(
        self, conversation: Conversation, history: Sequence[Message]
    ) -> tuple[list[Budget], str]:
        interval = self.settings.rounding_interval
        analysis_prompt = prompts.build_analysis_prompt(history, interval)

        try:
            raw = await self.gateway.generate_with_retry(analysis_prompt, [])
            analysis = extract_budget_analysis(raw, interval)
        except (UpstreamError, ValidationFailure) as e:
            logger.error("Budget generation failed for {}: {}", conversation.session_id, e)
            raise BudgetGenerationError(
                f"budget generation failed: {e}", reply=prompts.GENERATION_FAILED_REPLY
            ) from e

        try:
            validate_salary(analysis.salary)
        except SalaryFormatError as e:
            logger.warning("Unusual salary for {}: {}", conversation.session_id, e)

        budgets = self.budgets.create_batch(build_budget_records(conversation.account_id, analysis))

        conversation.budget_generated = True
        conversation.completed_at = utcnow()
        self.conversations.update(conversation)
        logger.info(
            "Generated {} budgets for conversation {}", len(budgets), conversation.session_id
        )

        return budgets, format_budget_summary(budgets, analysis)

    def get_history(self, session_id: str) -> list[Message]:
        conversation = self.conversations.get_by_session(session_id)
        return self.messages.list_by_conversation(conversation.id)

    async def reset_conversation(self, session_id: str) -> tuple[Conversation, str]:
        conversation = self.conversations.get_by_session(session_id)
        self.conversations.delete(conversation)
        logger.info("Reset conversation {}", session_id)
        return await self.start_conversation(conversation.account_id)
