# Overview: Booking type strategy table, status vocabularies and the header state graph.

"""
Smartpack Booking Types

================================================================================
PURPOSE: One engine, four workflows
================================================================================

Inbound receipt, outbound issue, defect-repair request and repair return are
the same state machine. They differ only in:
- which asset statuses may be scanned into a draft
- which status an asset carries while it sits in the draft
- which status it settles into once the booking is completed
- whether origin/destination routing is tracked and checked

Each workflow is therefore a BookingTypeConfig record in BOOKING_TYPES and the
services look the record up instead of branching on the type.

HEADER STATE GRAPH (identical for every type):

    INITIAL -> CONFIRMED -> FINALIZED <-> UNLOCKED
                                |
                                v
                            COMPLETED

    INITIAL, CONFIRMED -> CANCELLED   (only with zero attached assets)

COMPLETED and CANCELLED are terminal.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .errors import IllegalTransition, ValidationError


class BookingType(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    DEFECT_REQUEST = "DEFECT_REQUEST"
    REPAIR_RETURN = "REPAIR_RETURN"


class BookingStatus(str, Enum):
    INITIAL = "INITIAL"
    CONFIRMED = "CONFIRMED"
    FINALIZED = "FINALIZED"
    UNLOCKED = "UNLOCKED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AssetStatus(str, Enum):
    # Steady states
    FREE = "FREE"
    ISSUED = "ISSUED"
    AWAITING_PICKUP = "AWAITING_PICKUP"
    AWAITING_REPAIR = "AWAITING_REPAIR"
    IN_REPAIR = "IN_REPAIR"
    # Reserved while attached to an open draft
    INBOUND_DRAFT = "INBOUND_DRAFT"
    OUTBOUND_DRAFT = "OUTBOUND_DRAFT"
    DEFECT_DRAFT = "DEFECT_DRAFT"
    REPAIR_DRAFT = "REPAIR_DRAFT"


class BookingEvent(str, Enum):
    CONFIRM = "CONFIRM"
    FINALIZE = "FINALIZE"
    UNLOCK = "UNLOCK"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"


# Ledger action labels
ACTION_MOVED = "moved"
ACTION_CONFIRMED = "confirmed"
ACTION_REVERSED = "reversed"
ACTION_REPAIRED = "repaired"


# Every status must appear here; terminal states map to nothing.
TRANSITIONS: Mapping[BookingStatus, Mapping[BookingEvent, BookingStatus]] = MappingProxyType({
    BookingStatus.INITIAL: {
        BookingEvent.CONFIRM: BookingStatus.CONFIRMED,
        BookingEvent.CANCEL: BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingEvent.CONFIRM: BookingStatus.CONFIRMED,
        BookingEvent.FINALIZE: BookingStatus.FINALIZED,
        BookingEvent.CANCEL: BookingStatus.CANCELLED,
    },
    BookingStatus.FINALIZED: {
        BookingEvent.UNLOCK: BookingStatus.UNLOCKED,
        BookingEvent.COMPLETE: BookingStatus.COMPLETED,
    },
    BookingStatus.UNLOCKED: {
        BookingEvent.FINALIZE: BookingStatus.FINALIZED,
    },
    BookingStatus.COMPLETED: {},
    BookingStatus.CANCELLED: {},
})

# Header states in which assets may still be scanned in or returned
EDITABLE_STATUSES = frozenset({
    BookingStatus.INITIAL,
    BookingStatus.CONFIRMED,
    BookingStatus.UNLOCKED,
})

TERMINAL_STATUSES = frozenset(s for s, events in TRANSITIONS.items() if not events)


def next_status(current: BookingStatus | str, event: BookingEvent) -> BookingStatus:
    """
    Resolve the header status that follows `event`.

    Raises:
        IllegalTransition: if the graph has no edge for (current, event)
    """
    current = BookingStatus(current)
    target = TRANSITIONS[current].get(event)
    if target is None:
        raise IllegalTransition(
            f"Cannot {event.value.lower()} a booking in {current.value} status",
            data={"status": current.value, "event": event.value},
        )
    return target


@dataclass(frozen=True)
class BookingTypeConfig:
    """
    Per-type strategy record.

    pre_scan_statuses is ordered: the first entry is the primary default that
    a reversal falls back to when nothing better is known.
    """
    booking_type: BookingType
    prefix: str
    pre_scan_statuses: tuple[AssetStatus, ...]
    in_draft_status: AssetStatus
    steady_status: AssetStatus
    requires_routing: bool
    routed_statuses: frozenset[AssetStatus] = frozenset()
    objective_prefixes: Mapping[str, str] = field(default_factory=dict)
    default_objective: str | None = None
    labels: Mapping[BookingStatus, str] = field(default_factory=dict)

    @property
    def primary_pre_scan_status(self) -> AssetStatus:
        return self.pre_scan_statuses[0]

    def prefix_for(self, objective: str | None) -> str:
        if objective and objective in self.objective_prefixes:
            return self.objective_prefixes[objective]
        return self.prefix

    def label_for(self, status: BookingStatus | str) -> str:
        status = BookingStatus(status)
        return self.labels.get(status, status.value.replace("_", " ").title())

    # str-valued enums compare and hash like their values, so raw column
    # strings (including unknown ones) can be tested directly.
    def allows_scan_from(self, status: AssetStatus | str | None) -> bool:
        return status in self.pre_scan_statuses

    def checks_routing_for(self, status: AssetStatus | str | None) -> bool:
        return self.requires_routing and status in self.routed_statuses


BOOKING_TYPES: Mapping[BookingType, BookingTypeConfig] = MappingProxyType({
    BookingType.INBOUND: BookingTypeConfig(
        booking_type=BookingType.INBOUND,
        prefix="RC",
        pre_scan_statuses=(AssetStatus.ISSUED,),
        in_draft_status=AssetStatus.INBOUND_DRAFT,
        steady_status=AssetStatus.FREE,
        requires_routing=True,
        routed_statuses=frozenset({AssetStatus.ISSUED}),
        default_objective="receipt",
        labels={
            BookingStatus.FINALIZED: "Awaiting receipt check",
            BookingStatus.COMPLETED: "Received",
        },
    ),
    BookingType.OUTBOUND: BookingTypeConfig(
        booking_type=BookingType.OUTBOUND,
        prefix="IS",
        pre_scan_statuses=(AssetStatus.FREE,),
        in_draft_status=AssetStatus.OUTBOUND_DRAFT,
        steady_status=AssetStatus.ISSUED,
        requires_routing=True,
        default_objective="issue",
        labels={
            BookingStatus.FINALIZED: "Awaiting dispatch",
            BookingStatus.COMPLETED: "Issued",
        },
    ),
    BookingType.DEFECT_REQUEST: BookingTypeConfig(
        booking_type=BookingType.DEFECT_REQUEST,
        prefix="DF",
        pre_scan_statuses=(AssetStatus.FREE, AssetStatus.AWAITING_PICKUP),
        in_draft_status=AssetStatus.DEFECT_DRAFT,
        steady_status=AssetStatus.AWAITING_REPAIR,
        requires_routing=True,
        routed_statuses=frozenset({AssetStatus.AWAITING_PICKUP}),
        objective_prefixes={"claim": "DC"},
        default_objective="repair_request",
        labels={
            BookingStatus.FINALIZED: "Awaiting review",
            BookingStatus.COMPLETED: "Repair requested",
        },
    ),
    BookingType.REPAIR_RETURN: BookingTypeConfig(
        booking_type=BookingType.REPAIR_RETURN,
        prefix="RP",
        pre_scan_statuses=(AssetStatus.AWAITING_REPAIR,),
        in_draft_status=AssetStatus.REPAIR_DRAFT,
        steady_status=AssetStatus.IN_REPAIR,
        requires_routing=False,
        default_objective="send_to_repair",
        labels={
            BookingStatus.FINALIZED: "Awaiting review",
            BookingStatus.COMPLETED: "Sent to repair",
        },
    ),
})

IN_DRAFT_STATUSES = frozenset(cfg.in_draft_status for cfg in BOOKING_TYPES.values())


def get_config(booking_type: BookingType | str) -> BookingTypeConfig:
    """Look up the strategy record; unknown type strings are a validation error."""
    if isinstance(booking_type, BookingType):
        return BOOKING_TYPES[booking_type]
    try:
        return BOOKING_TYPES[BookingType(str(booking_type).strip().upper())]
    except ValueError:
        valid = ", ".join(t.value for t in BookingType)
        raise ValidationError(f"Unknown booking type '{booking_type}'. Must be one of: {valid}")
