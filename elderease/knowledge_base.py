"""
Site knowledge base for the FAQ chatbot and the heuristic that ranks it
against a user's question.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

TAG_SUBSTRING_POINTS = 3.0
TAG_TOKEN_POINTS = 2.0
CONTENT_WORD_POINTS = 0.3
MIN_TOKEN_TAG_LENGTH = 4  # tags must be longer than 3 characters to earn token points
MIN_CONTENT_WORD_LENGTH = 4

_TOKEN_SPLIT_RE = re.compile(r"\W+")


@dataclass(frozen=True)
class KnowledgeEntry:
    id: str
    tags: tuple[str, ...]
    content: str


class EntryScorer(Protocol):
    def score(self, message: str, entry: KnowledgeEntry) -> float: ...


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT_RE.split(text.lower()) if t]


class KeywordOverlapScorer:
    """
    Tag and keyword overlap scoring. Per entry, each tag earns 3 points when
    it appears anywhere in the message and 2 more when it is also a whole
    word of the message; each message word of four or more letters found in
    the entry content earns 0.3.
    """

    def score(self, message: str, entry: KnowledgeEntry) -> float:
        text = message.lower()
        tokens = tokenize(text)
        token_set = set(tokens)

        score = 0.0
        for tag in entry.tags:
            t = tag.lower()
            if t in text:
                score += TAG_SUBSTRING_POINTS
            if len(t) >= MIN_TOKEN_TAG_LENGTH and t in token_set:
                score += TAG_TOKEN_POINTS

        content = entry.content.lower()
        for word in tokens:
            if len(word) >= MIN_CONTENT_WORD_LENGTH and word in content:
                score += CONTENT_WORD_POINTS
        return score


def rank_entries(
    message: str,
    entries: Sequence[KnowledgeEntry],
    scorer: EntryScorer,
    limit: int = 8,
) -> list[tuple[KnowledgeEntry, float]]:
    """Best-scoring entries first; ties keep knowledge-base order."""
    scored = [(entry, scorer.score(message, entry)) for entry in entries]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]


KNOWLEDGE_BASE: tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        id="site-overview-and-navigation",
        tags=(
            "elderease",
            "website",
            "home page",
            "navigation",
            "how to use",
            "guardian",
            "elder",
        ),
        content=(
            "ElderEase helps elderly users and their guardians arrange support such as "
            "companionship, home visits, light housekeeping, running errands, and social "
            "activities. The home page gives guardians an overview of upcoming visits, "
            "pending service requests, and helpful tips. The main areas are Browse Services "
            "(available services and example volunteers), Request Service (submit a new "
            "request), My Schedule (upcoming visits), Notifications (updates and receipts), "
            "and pages describing the services and how ElderEase works. The ElderEase "
            "Assistant is the floating chat button on Elder and Guardian pages; it answers "
            "questions about services, volunteers, pricing, and how to use the website."
        ),
    ),
    KnowledgeEntry(
        id="services-overview",
        tags=("services", "what do you offer", "help", "support"),
        content=(
            "ElderEase offers Companionship, Home Visits, Running Errands, Light "
            "Housekeeping, and Socialization Activities. Companionship is friendly support "
            "and conversation. Home Visits are regular check-ins, medication reminders, and "
            "safety checks. Running Errands covers groceries, pharmacy pickups, and other "
            "daily tasks. Light Housekeeping keeps the home tidy and comfortable. "
            "Socialization Activities include outings, community events, and staying "
            "connected with others."
        ),
    ),
    KnowledgeEntry(
        id="companionship-details",
        tags=("companionship", "lonely", "conversation", "talk", "company"),
        content=(
            "Companionship means one-on-one conversations, emotional support and active "
            "listening, activities and games, reading books or newspapers together, and "
            "watching movies or favourite shows. It helps combat loneliness and supports "
            "mental wellness through regular social contact."
        ),
    ),
    KnowledgeEntry(
        id="home-visits-details",
        tags=("home visits", "visit", "check in", "check-ins", "welfare"),
        content=(
            "Home Visits provide scheduled wellness check-ins, help with medication "
            "reminders, a basic safety assessment of the living space, coordination with "
            "family members, and clear emergency contact protocols, giving families peace "
            "of mind that their loved one is safe."
        ),
    ),
    KnowledgeEntry(
        id="errands-details",
        tags=("errands", "shopping", "groceries", "pharmacy", "delivery"),
        content=(
            "Running Errands includes grocery shopping and delivery, pharmacy pickups, post "
            "office visits, banking assistance, and pet supply shopping, so seniors stay "
            "independent while getting help with physically demanding tasks."
        ),
    ),
    KnowledgeEntry(
        id="housekeeping-details",
        tags=("housekeeping", "cleaning", "laundry", "home", "tidy"),
        content=(
            "Light Housekeeping covers tidying and organising, laundry and linen changes, "
            "dishwashing and kitchen cleanup, dusting and vacuuming, and trash removal, "
            "keeping the home clean and comfortable without physical strain on the senior."
        ),
    ),
    KnowledgeEntry(
        id="socialization-details",
        tags=("social", "socialization", "activities", "outings", "community"),
        content=(
            "Socialization Activities include accompanied outings to parks, community "
            "events, group activities and clubs, museums and concerts, and restaurant or "
            "cafe visits, helping seniors stay active and connected with their community."
        ),
    ),
    KnowledgeEntry(
        id="dynamic-pricing",
        tags=("price", "pricing", "cost", "dynamic pricing", "rates"),
        content=(
            "Pricing is shown on the Browse Services and Request Service pages. Each "
            "service has a base hourly rate in Philippine pesos (PHP): Companionship 150, "
            "Light Housekeeping 170, Running Errands 200, and Home Visits 180 per hour. "
            "When a volunteer accepts a request, ElderEase issues a receipt from the "
            "selected services, the hours for each service, a 5% service fee, and a dynamic "
            "pricing adjustment that can raise the rate slightly for volunteers with a very "
            "strong performance record. The total and pricing tier appear on the receipt in "
            "Notifications."
        ),
    ),
    KnowledgeEntry(
        id="how-to-request-service",
        tags=("request", "book", "schedule", "how to start", "service request"),
        content=(
            "Guardians request services on the Request Service page: enter client details "
            "(name, gender, age, address), choose one or more services such as "
            "Companionship, Light Housekeeping, Running Errands, or Home Visits, set the "
            "hours for each, pick a date and start time, and add any notes. A preferred "
            "volunteer can optionally be chosen if they are available at that time. After "
            "submitting, the request shows as Pending until a volunteer is assigned."
        ),
    ),
    KnowledgeEntry(
        id="upcoming-visits",
        tags=("upcoming visit", "next visit", "schedule", "assigned volunteer"),
        content=(
            "The Next Support Visit card on the Elder home page shows the upcoming visit "
            "once a volunteer is assigned: the services, volunteer name and email, date, "
            "time range, and address. Pending service requests are listed with their "
            "current status."
        ),
    ),
    KnowledgeEntry(
        id="pending-requests-and-cancel",
        tags=("pending", "cancel", "reschedule", "change request"),
        content=(
            "Pending service requests appear under Pending Requests on the Elder home page "
            "with their services, date, time, and status. Guardians can cancel a pending "
            "request and optionally give a reason such as a schedule change, price "
            "concerns, or the preferred volunteer being unavailable. Requests that already "
            "have a volunteer assigned can no longer be cancelled there."
        ),
    ),
    KnowledgeEntry(
        id="volunteers-and-ratings",
        tags=("volunteer", "guardian", "highly rated", "ratings", "trusted"),
        content=(
            "Browse Services lists background-checked, highly rated volunteers with their "
            "average rating and number of completed sessions. Guardians can compare "
            "volunteers and pick a preferred one when requesting a service. ElderEase checks "
            "each volunteer's existing assignments so nobody is booked for two visits at "
            "the same time. After a visit is completed, guardians confirm it and can leave "
            "a rating."
        ),
    ),
    KnowledgeEntry(
        id="notifications-and-updates",
        tags=("notifications", "updates", "receipt", "confirmation"),
        content=(
            "Guardians get updates in Notifications when a volunteer is assigned and when "
            "a visit is completed. The receipt, with its #SR confirmation number, is sent "
            "there when the visit is confirmed, so you can track what happened and when."
        ),
    ),
)
