from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from loguru import logger

from aira.deps import get_service
from aira.errors import (
    BudgetGenerationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationFailure,
)
from aira.models.schemas import (
    Budget,
    HistoryResponse,
    ResetConversationResponse,
    SendMessageRequest,
    SendMessageResponse,
    StartConversationResponse,
)
from aira.services.conversation import ConversationService

router = APIRouter(prefix="/api/v1")

Service = Annotated[ConversationService, Depends(get_service)]


def get_account_id(x_account_id: Annotated[int, Header()]) -> int:
    return x_account_id


AccountId = Annotated[int, Depends(get_account_id)]


@router.post("/conversations/start", response_model=StartConversationResponse)
async def start_conversation(account_id: AccountId, service: Service):
    conversation, greeting = await service.start_conversation(account_id)
    return StartConversationResponse(session_id=conversation.session_id, message=greeting)


@router.post("/conversations/{session_id}/messages", response_model=SendMessageResponse)
async def send_message(session_id: str, request: SendMessageRequest, service: Service):
    logger.info("Message for conversation {}", session_id)
    result = await service.process_message(session_id, request.message)
    return SendMessageResponse(
        assistant_message=result.reply,
        completed=result.completed,
        budget_generated=bool(result.budgets),
        budgets=result.budgets,
    )


@router.get("/conversations/{session_id}/history", response_model=HistoryResponse)
def get_history(session_id: str, service: Service):
    return HistoryResponse(messages=service.get_history(session_id))


@router.post("/conversations/{session_id}/reset", response_model=ResetConversationResponse)
async def reset_conversation(session_id: str, service: Service):
    conversation, greeting = await service.reset_conversation(session_id)
    return ResetConversationResponse(new_session_id=conversation.session_id, greeting=greeting)


@router.get("/budgets", response_model=list[Budget])
def list_budgets(account_id: AccountId, service: Service):
    return service.budgets.list_by_account(account_id)


async def _budget_generation_failed(request: Request, exc: BudgetGenerationError):
    status = 422 if isinstance(exc.__cause__, ValidationFailure) else 502
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "assistant_message": exc.reply, "completed": False},
    )


def install_error_handlers(app: FastAPI) -> None:
    statuses = {
        NotFoundError: 404,
        ConflictError: 409,
        ValidationFailure: 422,
        UpstreamError: 502,
    }

    for exc_class, status in statuses.items():

        async def handler(request: Request, exc: Exception, status: int = status):
            logger.warning("{} {} -> {}: {}", request.method, request.url.path, status, exc)
            return JSONResponse(status_code=status, content={"detail": str(exc)})

        app.add_exception_handler(exc_class, handler)

    app.add_exception_handler(BudgetGenerationError, _budget_generation_failed)
