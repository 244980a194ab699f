"""FastAPI webhook application."""

from __future__ import annotations

import logging
import os

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.audit.logger import AuditLogger
from src.bot.handler import MessageHandler
from src.dispatch.dispatcher import DEFAULT_BASE_URL as D360_DEFAULT_BASE_URL
from src.dispatch.dispatcher import Dispatcher
from src.estimator.estimator import CalorieEstimator
from src.llm.client import DEFAULT_BASE_URL as OPENAI_DEFAULT_BASE_URL
from src.llm.client import DEFAULT_MODEL, LLMClient
from src.models import AuditEvent, AuditEventType, IncomingMessage
from src.session.store import ConversationHistory, InMemorySessionStore, MealJournal
from src.webhook.ingress import extract_message, handle_verification, parse_body

logger = logging.getLogger(__name__)

_ACK = {"status": "ok"}


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    api_key = os.environ["D360_API_KEY"]
    base_url = os.environ.get("D360_BASE_URL", D360_DEFAULT_BASE_URL)
    food_table = os.environ.get("FOOD_TABLE_PATH", "config/food-table.json")
    timeout = float(os.environ.get("DISPATCH_TIMEOUT_SECONDS", "10"))
    history_turns = int(os.environ.get("HISTORY_TURNS", "6"))
    verify_token = os.environ.get("WHATSAPP_VERIFY_TOKEN") or None
    audit_log = os.environ.get("AUDIT_LOG_PATH")

    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None

    llm: LLMClient | None = None
    openai_key = os.environ.get("OPENAI_API_KEY")
    if openai_key:
        llm = LLMClient(
            api_key=openai_key,
            model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
            base_url=os.environ.get("OPENAI_BASE_URL", OPENAI_DEFAULT_BASE_URL),
        )
    else:
        logger.warning("OPENAI_API_KEY not set; running in simple reply mode")

    handler = MessageHandler(
        dispatcher=Dispatcher(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            audit_logger=audit_logger,
        ),
        estimator=CalorieEstimator.from_file(food_table),
        journal=MealJournal(InMemorySessionStore()),
        history=ConversationHistory(max_turns=history_turns),
        llm=llm,
        audit_logger=audit_logger,
    )
    logger.info("Send endpoint base: %s", base_url)
    return create_app(handler, verify_token=verify_token, audit_logger=audit_logger)


def create_app(
    handler: MessageHandler,
    verify_token: str | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the webhook app. POST /webhook always answers 200."""
    app = FastAPI(docs_url=None, redoc_url=None)

    async def process(message: IncomingMessage) -> None:
        try:
            result = await handler.handle(message)
        except Exception:
            logger.exception("Failed to handle message from %s", message.sender_id)
            return
        if not result.succeeded:
            logger.error("No reply delivered to %s", message.sender_id)

    @app.get("/")
    async def root() -> PlainTextResponse:
        return PlainTextResponse("Kali online ✅")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    if verify_token:
        @app.get("/webhook")
        async def webhook_verify(request: Request) -> Response:
            result = handle_verification(dict(request.query_params), verify_token)
            if result is None:
                return JSONResponse({"error": "Unsupported mode"}, status_code=400)
            if result["status_code"] == 200:
                return PlainTextResponse(result["content"])
            return JSONResponse({"error": result["error"]}, status_code=403)

    @app.post("/webhook")
    async def webhook(request: Request, background: BackgroundTasks) -> JSONResponse:
        body = await request.body()
        payload = parse_body(body)
        message = extract_message(payload) if payload is not None else None

        if message is None:
            logger.info("Webhook delivery without an actionable message")
            if audit_logger:
                audit_logger.log(AuditEvent(
                    event_type=AuditEventType.WEBHOOK_IGNORED,
                    action="extract_message",
                    result="ignored",
                    details={"valid_json": payload is not None},
                ))
            return JSONResponse(_ACK)

        logger.info("Webhook %s message from %s", message.kind.value, message.sender_id)
        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=AuditEventType.WEBHOOK_RECEIVED,
                action="extract_message",
                result="success",
                sender_id=message.sender_id,
                details={"kind": message.kind.value, "message_id": message.message_id},
            ))
        background.add_task(process, message)
        return JSONResponse(_ACK)

    return app
