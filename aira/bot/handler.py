from loguru import logger
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from aira.config import get_settings
from aira.deps import get_service
from aira.errors import BudgetGenerationError, ConflictError, NotFoundError

HISTORY_PREVIEW_MESSAGES = 10

HELP_TEXT = (
    "Hai! Gue Aira, asisten budgeting kamu.\n\n"
    "Ceritain aja gaji, kota tempat tinggal, dan gaya hidup kamu. "
    "Kalau udah siap, bilang \"buatin budget\".\n\n"
    "Commands:\n"
    "/start — Mulai sesi baru\n"
    "/reset — Hapus sesi dan mulai ulang\n"
    "/history — Lihat obrolan terakhir\n"
    "/help — Tampilkan pesan ini"
)


async def _open_session(account_id: int, context: ContextTypes.DEFAULT_TYPE) -> str | None:
    """Start a conversation, or pick up the open one left from an earlier run.

    Returns the greeting when a new conversation was started.
    """
    service = get_service()
    try:
        conversation, greeting = await service.start_conversation(account_id)
    except ConflictError:
        conversation = service.conversations.get_open_by_account(account_id)
        if conversation is None:
            raise
        greeting = None
    context.user_data["session_id"] = conversation.session_id
    return greeting


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command."""
    greeting = await _open_session(update.effective_user.id, context)
    if greeting is None:
        await update.message.reply_text(
            "Kamu masih punya sesi yang belum selesai, lanjut aja ceritanya. "
            "Ketik /reset kalau mau mulai dari awal."
        )
        return
    await update.message.reply_text(greeting)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /help command."""
    await update.message.reply_text(HELP_TEXT)


async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /reset command."""
    session_id = context.user_data.get("session_id")
    if session_id is None:
        await start_command(update, context)
        return

    try:
        conversation, greeting = await get_service().reset_conversation(session_id)
    except (NotFoundError, ConflictError):
        context.user_data.pop("session_id", None)
        await start_command(update, context)
        return

    context.user_data["session_id"] = conversation.session_id
    await update.message.reply_text(greeting)


async def history_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /history command."""
    session_id = context.user_data.get("session_id")
    if session_id is None:
        await update.message.reply_text("Belum ada sesi. Ketik /start dulu ya.")
        return

    try:
        messages = get_service().get_history(session_id)
    except (NotFoundError, ConflictError):
        context.user_data.pop("session_id", None)
        await update.message.reply_text("Sesi kamu udah nggak ada. Ketik /start buat mulai lagi.")
        return

    lines = []
    for msg in messages[-HISTORY_PREVIEW_MESSAGES:]:
        speaker = "Kamu" if msg.role == "user" else "Aira"
        lines.append(f"{speaker}: {msg.content}")
    await update.message.reply_text("\n\n".join(lines) or "Belum ada pesan.")


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle incoming text messages: one conversation turn each."""
    user_text = update.message.text.strip()
    logger.info("Telegram message from {}: {}", update.effective_user.id, user_text)

    if "session_id" not in context.user_data:
        greeting = await _open_session(update.effective_user.id, context)
        if greeting is not None:
            await update.message.reply_text(greeting)

    await update.message.chat.send_action("typing")

    try:
        result = await get_service().process_message(context.user_data["session_id"], user_text)
    except BudgetGenerationError as e:
        await update.message.reply_text(e.reply)
        return
    except (NotFoundError, ConflictError):
        context.user_data.pop("session_id", None)
        await update.message.reply_text("Sesi kamu udah nggak ada. Ketik /start buat mulai lagi.")
        return

    await update.message.reply_text(result.reply)
    if result.completed and result.budgets:
        await update.message.reply_text("Budget kamu udah disimpan. Ketik /reset kalau mau bikin ulang.")


def build_bot_app() -> Application:
    """Build and return the Telegram bot application."""
    settings = get_settings()
    app = Application.builder().token(settings.telegram_bot_token).build()

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("reset", reset_command))
    app.add_handler(CommandHandler("history", history_command))

    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    return app
