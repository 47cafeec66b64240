from collections.abc import Callable
from datetime import UTC, datetime
from http import HTTPStatus
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from elderease import booking
from elderease.chatbot import ChatbotService, ChatTurn
from elderease.config import (
    AppSettings,
    OpenAISettings,
    get_app_settings,
    get_openai_settings,
)
from elderease.database import InMemoryKeyValueDatabase
from elderease.exceptions import (
    ChatbotError,
    ChatbotValidationError,
    ConflictError,
    ElderEaseError,
    NotAllowedError,
    NotFoundError,
    ValidationError,
)
from elderease.logger import logger
from elderease.models import (
    Assignment,
    Document,
    Notification,
    Rating,
    ServiceRequest,
    Volunteer,
    VolunteerPerformance,
)

router = APIRouter()
chat_router = APIRouter(prefix="/api", tags=["Chat"])

NowFn = Callable[[], datetime]


class VolunteerApplication(BaseModel):
    name: str
    email: str
    phone: str | None = None
    services: list[str] = Field(default_factory=list)


class NewServiceRequest(BaseModel):
    guardian_id: str
    elder_name: str
    address: str
    services: list[str] = Field(default_factory=list)
    hours_by_service: dict[str, float] = Field(default_factory=dict)
    service_date_ts: int
    start_time: str
    end_time: str
    preferred_volunteer_id: str | None = None
    notes: str | None = None


class CancelRequest(BaseModel):
    guardian_id: str
    reason: str | None = None


class AcceptRequest(BaseModel):
    volunteer_id: str


class CompleteAssignment(BaseModel):
    volunteer_id: str


class ConfirmAssignment(BaseModel):
    guardian_id: str


class RateAssignment(BaseModel):
    guardian_id: str
    rating: int
    comment: str | None = None


class HistoryItem(BaseModel):
    type: Any = None
    message: str


class ChatRequest(BaseModel):
    """
    Chat body as sent by the site widget. Anything that is not a usable
    message or history turn is dropped here instead of failing validation.
    """

    message: str = ""
    history: list[HistoryItem] = Field(default_factory=list)

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value: Any) -> str:
        return str(value) if value else ""

    @field_validator("history", mode="before")
    @classmethod
    def keep_text_turns(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [
            item
            for item in value
            if isinstance(item, dict) and isinstance(item.get("message"), str)
        ]


class ChatReply(BaseModel):
    reply: str


def _http_error(err: ElderEaseError) -> HTTPException:
    if isinstance(err, NotFoundError):
        status = HTTPStatus.NOT_FOUND
    elif isinstance(err, ValidationError):
        status = HTTPStatus.BAD_REQUEST
    elif isinstance(err, NotAllowedError):
        status = HTTPStatus.FORBIDDEN
    elif isinstance(err, ConflictError):
        status = HTTPStatus.CONFLICT
    else:
        status = HTTPStatus.INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status, detail=err.message)


def _db(request: Request) -> InMemoryKeyValueDatabase[str, Document]:
    return request.app.state.database


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/volunteers", status_code=HTTPStatus.CREATED)
async def apply_as_volunteer(
    application: VolunteerApplication, request: Request
) -> Volunteer:
    try:
        return booking.register_volunteer(
            _db(request),
            name=application.name,
            email=application.email,
            phone=application.phone,
            services=application.services,
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/volunteers/{volunteer_id}/approve")
async def approve_volunteer(volunteer_id: str, request: Request) -> Volunteer:
    try:
        return booking.approve_volunteer(_db(request), volunteer_id)
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/volunteers/{volunteer_id}/reject")
async def reject_volunteer(volunteer_id: str, request: Request) -> Volunteer:
    try:
        return booking.reject_volunteer(_db(request), volunteer_id)
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.get("/volunteers/{volunteer_id}/performance")
async def volunteer_performance(
    volunteer_id: str, request: Request
) -> VolunteerPerformance:
    db = _db(request)
    if not isinstance(db.get(booking.volunteer_key(volunteer_id)), Volunteer):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Volunteer not found")
    return booking.compute_performance(db.all(), volunteer_id)


@router.get("/volunteers/{volunteer_id}/open-requests")
async def open_requests(volunteer_id: str, request: Request) -> list[ServiceRequest]:
    try:
        return booking.list_open_requests(_db(request), volunteer_id)
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/requests", status_code=HTTPStatus.CREATED)
async def create_service_request(
    body: NewServiceRequest, request: Request
) -> ServiceRequest:
    try:
        return booking.create_request(
            _db(request),
            guardian_id=body.guardian_id,
            elder_name=body.elder_name,
            address=body.address,
            services=body.services,
            hours_by_service=body.hours_by_service,
            service_date_ts=body.service_date_ts,
            start_time=body.start_time,
            end_time=body.end_time,
            preferred_volunteer_id=body.preferred_volunteer_id,
            notes=body.notes,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        logger.warning("Service request rejected", reason=e.message)
        raise _http_error(e) from e


@router.get("/requests/{request_id}")
async def get_service_request(request_id: str, request: Request) -> ServiceRequest:
    try:
        return booking.get_request(_db(request), request_id)
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/requests/{request_id}/cancel")
async def cancel_service_request(
    request_id: str, body: CancelRequest, request: Request
) -> ServiceRequest:
    try:
        return booking.cancel_request(
            _db(request),
            request_id,
            guardian_id=body.guardian_id,
            reason=body.reason,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/requests/{request_id}/accept")
async def accept_service_request(
    request_id: str, body: AcceptRequest, request: Request
) -> Assignment:
    settings: AppSettings = request.app.state.settings
    try:
        return booking.accept_request(
            _db(request),
            request_id,
            body.volunteer_id,
            rates=settings.service_rates,
            unknown_service_policy=settings.unknown_service_policy,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.get("/assignments/{assignment_id}")
async def get_assignment(assignment_id: str, request: Request) -> Assignment:
    try:
        return booking.get_assignment(_db(request), assignment_id)
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/assignments/{assignment_id}/complete")
async def complete_assignment(
    assignment_id: str, body: CompleteAssignment, request: Request
) -> Assignment:
    try:
        return booking.complete_assignment(
            _db(request),
            assignment_id,
            volunteer_id=body.volunteer_id,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/assignments/{assignment_id}/confirm")
async def confirm_assignment(
    assignment_id: str, body: ConfirmAssignment, request: Request
) -> Assignment:
    try:
        return booking.confirm_completion(
            _db(request),
            assignment_id,
            guardian_id=body.guardian_id,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.post("/assignments/{assignment_id}/rating", status_code=HTTPStatus.CREATED)
async def rate_assignment(
    assignment_id: str, body: RateAssignment, request: Request
) -> Rating:
    try:
        return booking.rate_assignment(
            _db(request),
            assignment_id,
            guardian_id=body.guardian_id,
            rating=body.rating,
            comment=body.comment,
            now=request.app.state.now_fn(),
        )
    except ElderEaseError as e:
        raise _http_error(e) from e


@router.get("/guardians/{guardian_id}/notifications")
async def guardian_notifications(
    guardian_id: str, request: Request
) -> list[Notification]:
    return booking.list_notifications(_db(request), guardian_id)


@chat_router.post("/chat", response_model=ChatReply)
async def chat(body: ChatRequest, request: Request):
    chatbot: ChatbotService = request.app.state.chatbot
    history = [
        ChatTurn(role="user" if item.type == "user" else "assistant", text=item.message)
        for item in body.history
    ]

    try:
        reply = await chatbot.answer(body.message, history)
    except ChatbotValidationError as e:
        return JSONResponse(status_code=HTTPStatus.BAD_REQUEST, content={"error": e.message})
    except ChatbotError as e:
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content={"error": e.message}
        )

    return ChatReply(reply=reply)


def create_app(
    *,
    settings: AppSettings | None = None,
    openai_settings: OpenAISettings | None = None,
    chatbot: ChatbotService | None = None,
) -> FastAPI:
    settings = settings or get_app_settings()

    app = FastAPI(title="ElderEase API")
    db: InMemoryKeyValueDatabase[str, Document] = InMemoryKeyValueDatabase()
    app.state.database = db
    app.state.settings = settings
    app.state.now_fn = lambda: datetime.now(UTC)
    app.state.chatbot = chatbot or ChatbotService(
        openai_settings or get_openai_settings()
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.include_router(chat_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=4000)
