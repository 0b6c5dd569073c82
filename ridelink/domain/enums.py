"""Domain enumerations and state-transition rules."""

import enum


class ActorType(str, enum.Enum):
    COMPANY = "company"
    VENDOR = "vendor"

    @property
    def counterpart(self) -> "ActorType":
        return ActorType.VENDOR if self is ActorType.COMPANY else ActorType.COMPANY


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PartnershipStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.ACCEPTED, BookingStatus.CANCELLED},
    BookingStatus.ACCEPTED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.REJECTED: set(),
}

# Statuses shown in the "ongoing rides" lists of both parties
ONGOING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS}
)

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    status for status, targets in BOOKING_TRANSITIONS.items() if not targets
)
