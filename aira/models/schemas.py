from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from aira.utils.text import parse_salary

Role = Literal["user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    id: int | None = None
    account_id: int
    session_id: str
    budget_generated: bool = False
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None and self.deleted_at is None


class Message(BaseModel):
    id: int | None = None
    conversation_id: int
    role: Role
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class BudgetCategory(BaseModel):
    name: str
    amount: float
    description: str = ""


class BudgetAnalysis(BaseModel):
    salary: float
    location: str = ""
    analysis: str = ""
    categories: list[BudgetCategory] = []

    @field_validator("salary", mode="before")
    @classmethod
    def _parse_salary_text(cls, value):
        # models sometimes echo the user's wording, e.g. "5 juta"
        if isinstance(value, str):
            return parse_salary(value)
        return value



class Budget(BaseModel):
    id: int | None = None
    account_id: int
    category: str
    amount: float = Field(ge=0)
    period: Literal["monthly"] = "monthly"
    start_date: datetime
    end_date: datetime
    description: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class TurnResult(BaseModel):
    reply: str
    completed: bool
    budgets: list[Budget] = []


# API payloads


class StartConversationResponse(BaseModel):
    session_id: str
    message: str


class SendMessageRequest(BaseModel):
    message: str = Field(min_length=1)


class SendMessageResponse(BaseModel):
    assistant_message: str
    completed: bool
    budget_generated: bool = False
    budgets: list[Budget] = []


class HistoryResponse(BaseModel):
    messages: list[Message]


class ResetConversationResponse(BaseModel):
    message: str = "Conversation reset. Starting new interview."
    new_session_id: str
    greeting: str
