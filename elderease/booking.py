"""
Service request lifecycle: guardians create and cancel requests, volunteers
(or admins on their behalf) accept them, volunteers complete the visit and
guardians confirm and rate it.

Every state change that depends on a prior read runs inside a single store
transaction.
"""

import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import TypeVar

from elderease.database import InMemoryKeyValueDatabase, Transaction
from elderease.exceptions import (
    AssignmentStateError,
    DuplicateRatingError,
    NotAllowedError,
    NotFoundError,
    RequestAlreadyAssignedError,
    RequestNotPendingError,
    ScheduleConflictError,
    ValidationError,
)
from elderease.logger import logger
from elderease.models import (
    Assignment,
    AssignmentStatus,
    Document,
    Notification,
    NotificationKind,
    Rating,
    RequestStatus,
    ServiceRequest,
    Volunteer,
    VolunteerPerformance,
    VolunteerStatus,
)
from elderease.pricing import (
    UnknownServicePolicy,
    build_receipt,
    generate_confirmation_number,
    get_dynamic_adjustment,
)
from elderease.scheduling import (
    NO_TIME,
    day_marker,
    find_conflicts,
    is_end_after_start,
    to_minutes,
)

Database = InMemoryKeyValueDatabase[str, Document]


def volunteer_key(volunteer_id: str) -> str:
    return f"volunteer:{volunteer_id}"


def request_key(request_id: str) -> str:
    return f"request:{request_id}"


def assignment_key(assignment_id: str) -> str:
    return f"assignment:{assignment_id}"


def rating_key(rating_id: str) -> str:
    return f"rating:{rating_id}"


def notification_key(notification_id: str) -> str:
    return f"notification:{notification_id}"


def _new_id() -> str:
    return uuid.uuid4().hex


T = TypeVar("T")


def _load(
    store: Database | Transaction[str, Document], key: str, kind: type[T], label: str
) -> T:
    value = store.get(key)
    if not isinstance(value, kind):
        raise NotFoundError(f"{label} not found")
    return value


# volunteers


def register_volunteer(
    db: Database,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    services: Sequence[str] = (),
) -> Volunteer:
    if not name.strip() or not email.strip():
        raise ValidationError("Volunteer name and email are required.")

    volunteer = Volunteer(
        id=_new_id(),
        name=name.strip(),
        email=email.strip().lower(),
        phone=phone,
        services=list(services),
    )
    db.put(volunteer_key(volunteer.id), volunteer)
    logger.info("Volunteer application received", volunteer_id=volunteer.id)
    return volunteer


def set_volunteer_status(
    db: Database, volunteer_id: str, status: VolunteerStatus
) -> Volunteer:
    with db.transaction() as txn:
        volunteer = _load(txn, volunteer_key(volunteer_id), Volunteer, "Volunteer")
        volunteer.status = status
        txn.put(volunteer_key(volunteer_id), volunteer)

    logger.info("Volunteer status changed", volunteer_id=volunteer_id, status=status)
    return volunteer


def approve_volunteer(db: Database, volunteer_id: str) -> Volunteer:
    return set_volunteer_status(db, volunteer_id, VolunteerStatus.APPROVED)


def reject_volunteer(db: Database, volunteer_id: str) -> Volunteer:
    return set_volunteer_status(db, volunteer_id, VolunteerStatus.REJECTED)


def compute_performance(
    documents: Iterable[Document], volunteer_id: str
) -> VolunteerPerformance:
    """
    Completed-and-confirmed assignment count and mean rating for a
    volunteer. Ratings of zero or less are ignored.
    """
    tasks_completed = 0
    ratings: list[int] = []
    for doc in documents:
        if isinstance(doc, Assignment) and doc.volunteer_id == volunteer_id:
            if doc.status == AssignmentStatus.COMPLETED and doc.guardian_confirmed:
                tasks_completed += 1
        elif isinstance(doc, Rating) and doc.volunteer_id == volunteer_id:
            if doc.rating > 0:
                ratings.append(doc.rating)

    return VolunteerPerformance(
        volunteer_id=volunteer_id,
        tasks_completed=tasks_completed,
        average_rating=sum(ratings) / len(ratings) if ratings else None,
        rating_count=len(ratings),
    )


def _volunteer_assignments(
    documents: Iterable[Document], volunteer_id: str
) -> list[Assignment]:
    return [
        d
        for d in documents
        if isinstance(d, Assignment) and d.volunteer_id == volunteer_id
    ]


# requests


def create_request(
    db: Database,
    *,
    guardian_id: str,
    elder_name: str,
    address: str,
    services: Sequence[str],
    hours_by_service: Mapping[str, float],
    service_date_ts: int,
    start_time: str,
    end_time: str,
    now: datetime,
    preferred_volunteer_id: str | None = None,
    notes: str | None = None,
) -> ServiceRequest:
    if not elder_name.strip() or not address.strip():
        raise ValidationError("Please complete client details.")

    selected = list(dict.fromkeys(s for s in services if s))
    if not selected:
        raise ValidationError("Please select at least one service.")

    start, end = to_minutes(start_time), to_minutes(end_time)
    if start == NO_TIME or end == NO_TIME:
        raise ValidationError("Choose a date, a start time and an end time.")
    if not is_end_after_start(start_time, end_time):
        raise ValidationError("End time must be later than start time.")

    today = day_marker(now)
    if service_date_ts < today:
        raise ValidationError("Please choose a date that is not in the past.")
    if service_date_ts == today and start <= now.hour * 60 + now.minute:
        raise ValidationError("For today, please pick a start time later than now.")

    hours = {name: hours_by_service.get(name) for name in selected}
    if any(h is None or h <= 0 for h in hours.values()):
        raise ValidationError("Set duration (hours) for each selected service.")

    if preferred_volunteer_id:
        volunteer = _load(
            db, volunteer_key(preferred_volunteer_id), Volunteer, "Preferred volunteer"
        )
        if volunteer.status != VolunteerStatus.APPROVED:
            raise ValidationError("The preferred volunteer is not available for bookings.")
        busy = find_conflicts(
            service_date_ts,
            start_time,
            end_time,
            _volunteer_assignments(db.all(), preferred_volunteer_id),
        )
        if busy:
            raise ScheduleConflictError(
                "Your preferred volunteer isn't available at the selected time. "
                "Please pick another time or submit without a preference."
            )

    request = ServiceRequest(
        id=_new_id(),
        guardian_id=guardian_id,
        elder_name=elder_name.strip(),
        address=address.strip(),
        services=selected,
        hours_by_service=hours,
        service_date_ts=service_date_ts,
        start_time=start_time.strip(),
        end_time=end_time.strip(),
        preferred_volunteer_id=preferred_volunteer_id or None,
        notes=(notes or "").strip() or None,
        created_at=now,
    )
    db.put(request_key(request.id), request)
    logger.info(
        "Service request created",
        request_id=request.id,
        guardian_id=guardian_id,
        services=selected,
    )
    return request


def get_request(db: Database, request_id: str) -> ServiceRequest:
    return _load(db, request_key(request_id), ServiceRequest, "Request")


def cancel_request(
    db: Database,
    request_id: str,
    *,
    guardian_id: str,
    now: datetime,
    reason: str | None = None,
) -> ServiceRequest:
    with db.transaction() as txn:
        request = _load(txn, request_key(request_id), ServiceRequest, "Request")
        if request.guardian_id != guardian_id:
            raise NotAllowedError("Only the guardian who made the request can cancel it.")
        if request.status != RequestStatus.PENDING:
            raise RequestNotPendingError("Only pending requests can be cancelled.")

        request.status = RequestStatus.CANCELLED
        request.cancel_reason = (reason or "").strip() or None
        request.cancelled_at = now
        txn.put(request_key(request_id), request)

    logger.info("Service request cancelled", request_id=request_id, reason=request.cancel_reason)
    return request


def list_open_requests(db: Database, volunteer_id: str) -> list[ServiceRequest]:
    """Pending requests offered to this volunteer or to nobody in particular."""
    _load(db, volunteer_key(volunteer_id), Volunteer, "Volunteer")
    requests = [
        r
        for r in db.all()
        if isinstance(r, ServiceRequest)
        and r.status == RequestStatus.PENDING
        and r.preferred_volunteer_id in (None, volunteer_id)
    ]
    return sorted(requests, key=lambda r: (r.service_date_ts, to_minutes(r.start_time)))


# assignments


def accept_request(
    db: Database,
    request_id: str,
    volunteer_id: str,
    *,
    rates: Mapping[str, float],
    now: datetime,
    unknown_service_policy: UnknownServicePolicy = UnknownServicePolicy.ZERO_RATE,
) -> Assignment:
    """
    Assign a pending request to a volunteer and issue its receipt.

    The status check, the double-booking check and the writes run in one
    transaction, so of two concurrent acceptances exactly one succeeds and
    the other gets RequestAlreadyAssignedError.
    """
    with db.transaction() as txn:
        request = _load(txn, request_key(request_id), ServiceRequest, "Request")
        volunteer = _load(txn, volunteer_key(volunteer_id), Volunteer, "Volunteer")

        if volunteer.status != VolunteerStatus.APPROVED:
            raise NotAllowedError("Only approved volunteers can accept requests.")
        if request.status == RequestStatus.ASSIGNED:
            logger.warning(
                "Acceptance lost the race",
                request_id=request_id,
                volunteer_id=volunteer_id,
                assigned_to=request.assigned_volunteer_id,
            )
            raise RequestAlreadyAssignedError("This request was already assigned.")
        if request.status != RequestStatus.PENDING:
            raise RequestNotPendingError("This request is no longer pending.")

        documents = txn.all()
        conflicts = find_conflicts(
            request.service_date_ts,
            request.start_time,
            request.end_time,
            _volunteer_assignments(documents, volunteer_id),
        )
        if conflicts:
            logger.warning(
                "Schedule conflict on acceptance",
                request_id=request_id,
                volunteer_id=volunteer_id,
                conflicting=[a.id for a in conflicts],
            )
            raise ScheduleConflictError("You have another assignment at that time.")

        performance = compute_performance(documents, volunteer_id)
        adjustment = get_dynamic_adjustment(
            performance.tasks_completed, performance.average_rating
        )
        receipt = build_receipt(
            request.services,
            request.hours_by_service,
            adjustment,
            rates,
            unknown_service_policy=unknown_service_policy,
        )

        assignment_id = _new_id()
        receipt = receipt.model_copy(
            update={"confirmation_number": generate_confirmation_number(assignment_id)}
        )
        assignment = Assignment(
            id=assignment_id,
            request_id=request.id,
            volunteer_id=volunteer.id,
            volunteer_name=volunteer.name,
            volunteer_email=volunteer.email,
            guardian_id=request.guardian_id,
            elder_name=request.elder_name,
            address=request.address,
            services=list(request.services),
            hours_by_service=dict(request.hours_by_service),
            service_date_ts=request.service_date_ts,
            start_time=request.start_time,
            end_time=request.end_time,
            notes=request.notes,
            receipt=receipt,
            created_at=now,
        )

        request.status = RequestStatus.ASSIGNED
        request.assigned_volunteer_id = volunteer.id
        request.assigned_at = now

        notification = Notification(
            id=_new_id(),
            guardian_id=request.guardian_id,
            kind=NotificationKind.ASSIGNED,
            text=(
                f"{volunteer.name} has been assigned to your request. "
                f"Receipt {receipt.confirmation_number}: total {receipt.total:.2f}."
            ),
            assignment_id=assignment.id,
            created_at=now,
        )

        txn.put(assignment_key(assignment.id), assignment)
        txn.put(request_key(request.id), request)
        txn.put(notification_key(notification.id), notification)

    logger.info(
        "Request assigned",
        request_id=request_id,
        volunteer_id=volunteer_id,
        assignment_id=assignment.id,
        tier=adjustment.tier,
        total=receipt.total,
    )
    return assignment


def get_assignment(db: Database, assignment_id: str) -> Assignment:
    return _load(db, assignment_key(assignment_id), Assignment, "Assignment")


def complete_assignment(
    db: Database, assignment_id: str, *, volunteer_id: str, now: datetime
) -> Assignment:
    with db.transaction() as txn:
        assignment = _load(txn, assignment_key(assignment_id), Assignment, "Assignment")
        if assignment.volunteer_id != volunteer_id:
            raise NotAllowedError("Only the assigned volunteer can complete this visit.")
        if assignment.status != AssignmentStatus.ASSIGNED:
            raise AssignmentStateError("This visit is already marked completed.")

        assignment.status = AssignmentStatus.COMPLETED
        assignment.completed_at = now
        txn.put(assignment_key(assignment_id), assignment)

        notification = Notification(
            id=_new_id(),
            guardian_id=assignment.guardian_id,
            kind=NotificationKind.COMPLETED,
            text=(
                f"{assignment.volunteer_name} marked the visit as completed. "
                "Please confirm and rate the visit."
            ),
            assignment_id=assignment.id,
            created_at=now,
        )
        txn.put(notification_key(notification.id), notification)

    logger.info("Assignment completed", assignment_id=assignment_id)
    return assignment


def confirm_completion(
    db: Database, assignment_id: str, *, guardian_id: str, now: datetime
) -> Assignment:
    with db.transaction() as txn:
        assignment = _load(txn, assignment_key(assignment_id), Assignment, "Assignment")
        if assignment.guardian_id != guardian_id:
            raise NotAllowedError("Only the requesting guardian can confirm this visit.")
        if assignment.status != AssignmentStatus.COMPLETED:
            raise AssignmentStateError("The volunteer has not completed this visit yet.")

        if not assignment.guardian_confirmed:
            assignment.guardian_confirmed = True
            assignment.confirmed_at = now
            txn.put(assignment_key(assignment_id), assignment)

    logger.info("Assignment confirmed by guardian", assignment_id=assignment_id)
    return assignment


def rate_assignment(
    db: Database,
    assignment_id: str,
    *,
    guardian_id: str,
    rating: int,
    now: datetime,
    comment: str | None = None,
) -> Rating:
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5.")

    with db.transaction() as txn:
        assignment = _load(txn, assignment_key(assignment_id), Assignment, "Assignment")
        if assignment.guardian_id != guardian_id:
            raise NotAllowedError("Only the requesting guardian can rate this visit.")
        if assignment.status != AssignmentStatus.COMPLETED:
            raise AssignmentStateError("Visits can be rated once they are completed.")
        if any(
            isinstance(d, Rating) and d.assignment_id == assignment_id
            for d in txn.all()
        ):
            raise DuplicateRatingError("This visit has already been rated.")

        record = Rating(
            id=_new_id(),
            assignment_id=assignment_id,
            volunteer_id=assignment.volunteer_id,
            guardian_id=guardian_id,
            rating=rating,
            comment=(comment or "").strip() or None,
            created_at=now,
        )
        txn.put(rating_key(record.id), record)

    logger.info(
        "Assignment rated",
        assignment_id=assignment_id,
        volunteer_id=assignment.volunteer_id,
        rating=rating,
    )
    return record


def list_notifications(db: Database, guardian_id: str) -> list[Notification]:
    notifications = [
        n
        for n in db.all()
        if isinstance(n, Notification) and n.guardian_id == guardian_id
    ]
    return sorted(notifications, key=lambda n: n.created_at, reverse=True)
