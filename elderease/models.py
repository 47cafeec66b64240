"""
Domain models for guardians' service requests, volunteer assignments and
the receipts issued when a volunteer accepts a request.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class VolunteerStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestStatus(StrEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    CANCELLED = "cancelled"


class AssignmentStatus(StrEnum):
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class PricingTier(StrEnum):
    ASSOCIATE = "Associate"
    PROFICIENT = "Proficient"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class NotificationKind(StrEnum):
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class Volunteer(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    services: list[str] = Field(default_factory=list)
    status: VolunteerStatus = VolunteerStatus.PENDING


class ServiceRequest(BaseModel):
    id: str
    guardian_id: str
    elder_name: str
    address: str
    services: list[str]
    hours_by_service: dict[str, float] = Field(default_factory=dict)
    service_date_ts: int  # epoch millis at midnight UTC of the service day
    start_time: str  # "HH:MM", 24-hour
    end_time: str
    preferred_volunteer_id: str | None = None
    notes: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    assigned_volunteer_id: str | None = None
    assigned_at: datetime | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    base_rate: float
    hours: float
    adjusted_rate: float
    amount: float


class DynamicPricing(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: PricingTier
    percent: float


class Receipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_items: tuple[LineItem, ...] = ()
    subtotal: float = 0.0
    commission: float = 0.0
    total: float = 0.0
    dynamic_pricing: DynamicPricing
    confirmation_number: str | None = None


class Assignment(BaseModel):
    id: str
    request_id: str
    volunteer_id: str
    volunteer_name: str
    volunteer_email: str
    guardian_id: str
    # copied from the request when it was accepted
    elder_name: str
    address: str
    services: list[str]
    hours_by_service: dict[str, float] = Field(default_factory=dict)
    service_date_ts: int
    start_time: str
    end_time: str
    notes: str | None = None
    receipt: Receipt
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    guardian_confirmed: bool = False
    created_at: datetime
    completed_at: datetime | None = None
    confirmed_at: datetime | None = None


class Rating(BaseModel):
    id: str
    assignment_id: str
    volunteer_id: str
    guardian_id: str
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime


class Notification(BaseModel):
    id: str
    guardian_id: str
    kind: NotificationKind
    text: str
    assignment_id: str | None = None
    created_at: datetime


class VolunteerPerformance(BaseModel):
    volunteer_id: str
    tasks_completed: int = 0
    average_rating: float | None = None
    rating_count: int = 0


Document = Volunteer | ServiceRequest | Assignment | Rating | Notification
