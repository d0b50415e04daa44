import threading
from collections.abc import Sequence

from tinydb import Query, TinyDB

from aira.errors import ConflictError, ConversationClosedError, NotFoundError
from aira.models.schemas import Budget, Conversation, Message, utcnow


class Database:
    """One TinyDB file shared by the stores, guarded by a single lock since
    TinyDB itself is not thread-safe."""

    def __init__(self, db_path: str = "aira.json"):
        self.db = TinyDB(db_path)
        self.lock = threading.RLock()

    def table(self, name: str):
        return self.db.table(name)

    def close(self) -> None:
        self.db.close()


class MessageRepository:
    def __init__(self, database: Database):
        self.database = database
        self.table = database.table("messages")

    def create(self, message: Message) -> Message:
        data = message.model_dump(mode="json")
        data.pop("id", None)
        with self.database.lock:
            message.id = self.table.insert(data)
        return message

    def list_by_conversation(self, conversation_id: int) -> list[Message]:
        Msg = Query()
        with self.database.lock:
            docs = self.table.search(Msg.conversation_id == conversation_id)
        messages = [Message(id=doc.doc_id, **doc) for doc in docs]
        # Insertion id breaks ties between messages created in the same instant
        messages.sort(key=lambda m: (m.created_at, m.id))
        return messages

    def delete_by_conversation(self, conversation_id: int) -> int:
        Msg = Query()
        with self.database.lock:
            removed = self.table.remove(Msg.conversation_id == conversation_id)
        return len(removed)


class ConversationRepository:
    def __init__(self, database: Database, messages: MessageRepository):
        self.database = database
        self.table = database.table("conversations")
        self.messages = messages

    def _open_docs(self, account_id: int):
        Conv = Query()
        return self.table.search(
            (Conv.account_id == account_id)
            & (Conv.completed_at == None)  # noqa: E711
            & (Conv.deleted_at == None)  # noqa: E711
        )

    def create(self, conversation: Conversation) -> Conversation:
        """Insert a conversation. Refuses a second open conversation for the
        same account; the check and insert happen under one lock."""
        data = conversation.model_dump(mode="json")
        data.pop("id", None)
        with self.database.lock:
            if conversation.is_open and self._open_docs(conversation.account_id):
                raise ConflictError(
                    f"account {conversation.account_id} already has an open conversation"
                )
            conversation.id = self.table.insert(data)
        return conversation

    def get_by_session(self, session_id: str) -> Conversation:
        Conv = Query()
        with self.database.lock:
            doc = self.table.get(Conv.session_id == session_id)
        if doc is None:
            raise NotFoundError(f"conversation {session_id} not found")
        conversation = Conversation(id=doc.doc_id, **doc)
        if conversation.deleted_at is not None:
            raise ConversationClosedError(f"conversation {session_id} was reset")
        return conversation

    def get_open_by_account(self, account_id: int) -> Conversation | None:
        with self.database.lock:
            docs = self._open_docs(account_id)
        if not docs:
            return None
        doc = max(docs, key=lambda d: d["created_at"])
        return Conversation(id=doc.doc_id, **doc)

    def update(self, conversation: Conversation) -> Conversation:
        conversation.updated_at = utcnow()
        data = conversation.model_dump(mode="json")
        data.pop("id", None)
        with self.database.lock:
            if not self.table.contains(doc_id=conversation.id):
                raise NotFoundError(f"conversation #{conversation.id} not found")
            self.table.update(data, doc_ids=[conversation.id])
        return conversation

    def delete(self, conversation: Conversation) -> None:
        """Soft-delete the conversation and drop its messages."""
        now = utcnow()
        with self.database.lock:
            if not self.table.contains(doc_id=conversation.id):
                raise NotFoundError(f"conversation #{conversation.id} not found")
            self.messages.delete_by_conversation(conversation.id)
            self.table.update(
                {"deleted_at": now.isoformat(), "updated_at": now.isoformat()},
                doc_ids=[conversation.id],
            )
        conversation.deleted_at = now


class BudgetRepository:
    def __init__(self, database: Database):
        self.database = database
        self.table = database.table("budgets")

    def create_batch(self, budgets: Sequence[Budget]) -> list[Budget]:
        """Insert all budgets in a single write."""
        rows = []
        for budget in budgets:
            data = budget.model_dump(mode="json")
            data.pop("id", None)
            rows.append(data)
        with self.database.lock:
            ids = self.table.insert_multiple(rows)
        for budget, doc_id in zip(budgets, ids):
            budget.id = doc_id
        return list(budgets)

    def list_by_account(self, account_id: int) -> list[Budget]:
        B = Query()
        with self.database.lock:
            docs = self.table.search(B.account_id == account_id)
        return [Budget(id=doc.doc_id, **doc) for doc in docs]
