"""Shared fixtures: a throwaway TinyDB file and a scripted model client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from aira.config import Settings
from aira.deps import build_service
from aira.llm.gateway import ModelGateway


def completion(text: str) -> SimpleNamespace:
    """Shape of an OpenAI chat-completion response with a single choice."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


BUDGET_JSON = """{
  "salary": 5000000,
  "location": "Jakarta",
  "analysis": "Sewa di Jakarta mahal, jadi kewajiban dapat porsi terbesar.",
  "categories": [
    {"name": "Kewajiban", "amount": 1750000, "description": "sewa, utilities"},
    {"name": "Makan", "amount": 1250000, "description": "makanan sehari-hari"},
    {"name": "Transport", "amount": 500000, "description": "transportasi"},
    {"name": "Healing", "amount": 500000, "description": "hiburan"},
    {"name": "Tabungan", "amount": 750000, "description": "tabungan & investasi"},
    {"name": "Lain-lain", "amount": 250000, "description": "pengeluaran lain"}
  ]
}"""


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        db_path=str(tmp_path / "aira.json"),
        telegram_bot_token="",
    )


@pytest.fixture
def llm():
    """Fake AsyncOpenAI client. Tests script ``llm.chat.completions.create``."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("hai! 👋"))
    return client


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def gateway(settings, llm, sleep):
    return ModelGateway(settings, client=llm, sleep=sleep)


@pytest.fixture
def service(settings, gateway):
    svc = build_service(settings, gateway=gateway)
    yield svc
    svc.conversations.database.close()
