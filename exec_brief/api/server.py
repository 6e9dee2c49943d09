"""
Executive Brief: HTTP API.

create_app(context) builds the FastAPI application behind the dashboard.
Every route catches its own failures and answers 500 with
{"error": <what failed>, "message": <exception text>}; malformed request
bodies get the same shape before any side effect runs. The OAuth callback
is the exception: a missing code is a 400 and a failed exchange renders an
HTML error page.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from exec_brief.api.pages import connected_page, failed_page
from exec_brief.api.schemas import (
    CardCreate,
    CardUpdate,
    DraftRequest,
    SendEmailRequest,
    SettingsUpdate,
    TaskCreate,
    TaskFromEmail,
    TaskFromEvent,
    TaskStatusUpdate,
)
from exec_brief.app import AppContext
from exec_brief.core.llm import generate_email_draft
from exec_brief.core.scheduler import build_scheduler
from exec_brief.core.trello_sync import sync_trello_tasks
from exec_brief.integrations import google_auth
from exec_brief.integrations.trello import card_to_task

logger = logging.getLogger(__name__)

_CLOSED_BOARD = "Closed boards cannot be edited"
_NO_LIST = "No Trello list configured"


def _failure(summary: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": summary, "message": str(exc)})


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _humanize_card_error(exc: Exception) -> str:
    text = str(exc)
    if _CLOSED_BOARD in text:
        return (
            "Cannot create task: The selected Trello board is closed/archived. "
            "Please select a different board in Settings."
        )
    if _NO_LIST in text:
        return "Please configure a Trello board and list in Settings before creating tasks."
    return "Failed to create Trello card"


def create_app(context: AppContext, enable_scheduler: bool | None = None) -> FastAPI:
    """Create the FastAPI app bound to an application context.

    enable_scheduler defaults to the SCHEDULER_ENABLED setting; the
    scheduler runs for the lifetime of the app.
    """
    from exec_brief.config import settings

    if enable_scheduler is None:
        enable_scheduler = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if enable_scheduler:
            scheduler = build_scheduler(context, tz=context.user.timezone)
            scheduler.start()
            logger.info("Scheduler started")
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    app = FastAPI(title="Executive Brief API", version="0.1.0", lifespan=lifespan)
    app.state.context = context
    user = context.user

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("Invalid request to %s: %s", request.url.path, exc.errors())
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Invalid request", "message": details},
        )

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # -----------------------------------------------------------------------
    # Brief, mail and calendar
    # -----------------------------------------------------------------------

    @app.get("/api/brief/today")
    async def brief_today(sync: bool = False):
        try:
            return await context.brief_builder().build(user, sync=sync)
        except Exception as exc:
            logger.error("Error generating daily brief: %s", exc)
            return _failure("Failed to generate daily brief", exc)

    @app.post("/api/email/draft")
    async def email_draft(body: DraftRequest):
        try:
            draft = await generate_email_draft(
                body.context, body.tone, generator=context.generator,
            )
            return {"draft": draft, "threadId": body.threadId}
        except Exception as exc:
            logger.error("Error generating draft: %s", exc)
            return _failure("Failed to generate draft", exc)

    @app.post("/api/email/send")
    async def email_send(body: SendEmailRequest):
        try:
            await context.mail.send_email(str(body.to), body.subject, body.body)
            return {"success": True}
        except Exception as exc:
            logger.error("Error sending email: %s", exc)
            return _failure("Failed to send email", exc)

    @app.get("/api/calendar/today")
    async def calendar_today():
        try:
            events = await context.calendar.fetch_today_events()
            return {"events": [e.to_dict() for e in events]}
        except Exception as exc:
            logger.error("Error fetching calendar: %s", exc)
            return _failure("Failed to fetch calendar", exc)

    @app.get("/api/emails")
    async def list_emails(limit: str | None = None):
        try:
            max_results = int(limit) if limit and limit.isdigit() and int(limit) > 0 else 20
            emails = await context.mail.fetch_recent_emails(max_results)
            return {"emails": [e.to_dict() for e in emails]}
        except Exception as exc:
            logger.error("Error fetching emails: %s", exc)
            return _failure("Failed to fetch emails", exc)

    # -----------------------------------------------------------------------
    # Settings
    # -----------------------------------------------------------------------

    @app.get("/api/settings")
    async def get_settings():
        try:
            current = await asyncio.to_thread(context.settings_db.get_or_create, user.id)
            return current.to_dict()
        except Exception as exc:
            logger.error("Error fetching settings: %s", exc)
            return _failure("Failed to fetch settings", exc)

    @app.post("/api/settings")
    async def update_settings(body: SettingsUpdate):
        try:
            updated = await asyncio.to_thread(
                context.settings_db.upsert_settings, user.id, **body.to_store_fields(),
            )
            return updated.to_dict()
        except Exception as exc:
            logger.error("Error updating settings: %s", exc)
            return _failure("Failed to update settings", exc)

    # -----------------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------------

    @app.get("/api/tasks")
    async def list_tasks(sync: bool = False):
        try:
            if sync:
                try:
                    await sync_trello_tasks(
                        user, context.task_db, context.settings_db, context.trello,
                    )
                except Exception as exc:
                    logger.warning("Failed to sync with Trello: %s", exc)
            tasks = await asyncio.to_thread(context.task_db.list_tasks, user.id)
            return {"tasks": [t.to_dict() for t in tasks]}
        except Exception as exc:
            logger.error("Error fetching tasks: %s", exc)
            return _failure("Failed to fetch tasks", exc)

    @app.post("/api/tasks")
    async def create_task(body: TaskCreate):
        try:
            task = await asyncio.to_thread(
                context.task_db.create_task,
                user.id,
                body.title,
                "pending",
                _parse_datetime(body.dueAt) if body.dueAt else None,
                body.source,
                {"priority": body.priority} if body.priority else {},
            )
            return task.to_dict()
        except Exception as exc:
            logger.error("Error creating task: %s", exc)
            return _failure("Failed to create task", exc)

    @app.patch("/api/tasks/{task_id}")
    async def update_task(task_id: int, body: TaskStatusUpdate):
        try:
            updated = await asyncio.to_thread(
                context.task_db.update_status, task_id, body.status,
            )
            if not updated:
                logger.warning("Task #%d not found for status update", task_id)
            return {"success": True}
        except Exception as exc:
            logger.error("Error updating task: %s", exc)
            return _failure("Failed to update task", exc)

    async def _mirror_card(card: dict):
        fields = card_to_task(card)
        return await asyncio.to_thread(
            context.task_db.create_task,
            user.id,
            fields["title"],
            fields["status"],
            fields["due_at"],
            fields["source"],
            fields["metadata"],
        )

    async def _default_list_id() -> str:
        current = await asyncio.to_thread(context.settings_db.get_settings, user.id)
        board_id = current.trello_board_id if current else None
        return await context.trello.get_default_list_id(board_id)

    @app.post("/api/tasks/from-email")
    async def task_from_email(body: TaskFromEmail):
        try:
            desc = (
                f"Email ID: {body.emailId}\n\n{body.content[:500]}"
                if body.content
                else f"Email ID: {body.emailId}"
            )
            card = await context.trello.create_card(
                await _default_list_id(), f"Follow up: {body.subject}", desc=desc,
            )
            task = await _mirror_card(card)
            return {"task": task.to_dict(), "card": card}
        except Exception as exc:
            logger.error("Error creating task from email: %s", exc)
            return _failure("Failed to create task from email", exc)

    @app.post("/api/tasks/from-event")
    async def task_from_event(body: TaskFromEvent):
        try:
            desc = (
                f"Meeting with: {', '.join(body.attendees)}\nEvent ID: {body.eventId}"
                if body.attendees
                else f"Event ID: {body.eventId}"
            )
            due = _parse_datetime(body.startTime) - timedelta(hours=24)
            card = await context.trello.create_card(
                await _default_list_id(),
                f"Prepare for: {body.eventTitle}",
                desc=desc,
                due=due.astimezone(timezone.utc).isoformat(),
            )
            task = await _mirror_card(card)
            return {"task": task.to_dict(), "card": card}
        except Exception as exc:
            logger.error("Error creating task from event: %s", exc)
            return _failure("Failed to create task from event", exc)

    # -----------------------------------------------------------------------
    # Trello
    # -----------------------------------------------------------------------

    @app.get("/api/trello/boards")
    async def trello_boards():
        try:
            return {"boards": await context.trello.fetch_boards()}
        except Exception as exc:
            logger.error("Error fetching Trello boards: %s", exc)
            return _failure("Failed to fetch Trello boards", exc)

    @app.get("/api/trello/boards/{board_id}/lists")
    async def trello_lists(board_id: str):
        try:
            return {"lists": await context.trello.fetch_board_lists(board_id)}
        except Exception as exc:
            logger.error("Error fetching Trello lists: %s", exc)
            return _failure("Failed to fetch Trello lists", exc)

    @app.post("/api/trello/cards")
    async def trello_create_card(body: CardCreate):
        try:
            current = await asyncio.to_thread(context.settings_db.get_settings, user.id)
            list_id = current.trello_list_id if current else None
            if not list_id:
                raise ValueError(
                    f"{_NO_LIST}. Please select a board and list in Settings."
                )
            card = await context.trello.create_card(
                list_id, body.name, desc=body.desc, due=body.due,
            )
            task = await _mirror_card(card)
            return {"card": card, "task": task.to_dict()}
        except Exception as exc:
            logger.error("Error creating Trello card: %s", exc)
            return _failure(_humanize_card_error(exc), exc)

    @app.patch("/api/trello/cards/{card_id}")
    async def trello_update_card(card_id: str, body: CardUpdate):
        try:
            card = await context.trello.update_card(
                card_id, **body.model_dump(exclude_unset=True),
            )
            task = await asyncio.to_thread(
                context.task_db.find_by_external_id, user.id, card_id,
            )
            if task is not None:
                due = card.get("due")
                await asyncio.to_thread(
                    context.task_db.update_task,
                    task.id,
                    title=card.get("name", task.title),
                    status="completed" if card.get("dueComplete") else "pending",
                    due_at=_parse_datetime(due) if due else None,
                    metadata={
                        **task.metadata,
                        "description": card.get("desc") or "",
                        "listId": card.get("idList"),
                    },
                )
            return {"card": card}
        except Exception as exc:
            logger.error("Error updating Trello card: %s", exc)
            return _failure("Failed to update Trello card", exc)

    @app.delete("/api/trello/cards/{card_id}")
    async def trello_delete_card(card_id: str):
        try:
            await context.trello.delete_card(card_id)
            task = await asyncio.to_thread(
                context.task_db.find_by_external_id, user.id, card_id,
            )
            if task is not None:
                await asyncio.to_thread(context.task_db.delete_task, task.id)
            return {"success": True}
        except Exception as exc:
            logger.error("Error deleting Trello card: %s", exc)
            return _failure("Failed to delete Trello card", exc)

    # -----------------------------------------------------------------------
    # Google OAuth
    # -----------------------------------------------------------------------

    @app.get("/api/oauth/authorize")
    async def oauth_authorize(request: Request):
        try:
            redirect_uri = str(request.url_for("oauth_callback"))
            return RedirectResponse(google_auth.build_auth_url(redirect_uri), status_code=302)
        except Exception as exc:
            logger.error("Error generating auth URL: %s", exc)
            return _failure("Failed to generate authorization URL", exc)

    @app.get("/api/oauth/callback", name="oauth_callback")
    async def oauth_callback(request: Request, code: str | None = None):
        if not code:
            return JSONResponse(status_code=400, content={"error": "Authorization code missing"})
        try:
            redirect_uri = str(request.url_for("oauth_callback"))
            result = await asyncio.to_thread(google_auth.exchange_code, code, redirect_uri)
            await asyncio.to_thread(
                context.token_db.save_token,
                user.id,
                "google",
                result.access_token,
                result.refresh_token,
                result.expires_at,
                result.scopes,
            )
            return HTMLResponse(connected_page())
        except Exception as exc:
            logger.error("Error in OAuth callback: %s", exc)
            return HTMLResponse(failed_page(str(exc)), status_code=500)

    return app
