from functools import lru_cache

from aira.config import Settings, get_settings
from aira.db.repository import BudgetRepository, ConversationRepository, Database, MessageRepository
from aira.llm.gateway import ModelGateway
from aira.services.conversation import ConversationService


def build_service(settings: Settings, gateway: ModelGateway | None = None) -> ConversationService:
    database = Database(settings.db_path)
    messages = MessageRepository(database)
    return ConversationService(
        conversations=ConversationRepository(database, messages),
        messages=messages,
        budgets=BudgetRepository(database),
        gateway=gateway or ModelGateway(settings),
        settings=settings,
    )


@lru_cache
def get_service() -> ConversationService:
    return build_service(get_settings())
