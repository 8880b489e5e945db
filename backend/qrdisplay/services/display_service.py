# Overview: Display lifecycle state machine; bulk creation, assignment, activation, reset.

"""
Display Lifecycle

STATE MACHINE:
    inventory --assign--> sold
    inventory/sold --activate--> active
    active --reset--> inventory
    any --deactivate--> inactive

RULES:
1. Every status change goes through _transition() and the _TRANSITIONS table,
   which has an entry for every DisplayStatus.
2. store_id and activated_at are set exactly when entering active and cleared
   by reset. assigned_org_id survives resets.
3. owner_org_id and display_id never change after creation (enforced on the model).
4. reset requires a store binding: "Display not activated" otherwise.
5. deactivate is the admin override; it touches status only.

ENTRY ROUTING:
    The display's status decides what a customer scanning the QR code sees:
    inventory/sold -> activation flow, active -> sample flow, anything else ->
    activation flow.
"""

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError, ValidationError
from ..models import Display, DisplayStatus
from ..models.types import StrEnum
from ..validation import require_positive_quantity
from .concurrency import lock_for_update, unit_of_work
from .notification_service import CHANNEL_EMAIL, notify_after_commit
from .store_service import get_organization, get_store
from qrdisplay.time_utils import utcnow


MAX_DISPLAYS_PER_BATCH = 1000


class DisplayAction(StrEnum):
    ASSIGN = "assign"
    ACTIVATE = "activate"
    RESET = "reset"
    DEACTIVATE = "deactivate"


class EntryRoute(StrEnum):
    ACTIVATION = "activation"
    SAMPLE = "sample"


_TRANSITIONS: dict[DisplayStatus, dict[DisplayAction, DisplayStatus]] = {
    DisplayStatus.INVENTORY: {
        DisplayAction.ASSIGN: DisplayStatus.SOLD,
        DisplayAction.ACTIVATE: DisplayStatus.ACTIVE,
        DisplayAction.DEACTIVATE: DisplayStatus.INACTIVE,
    },
    DisplayStatus.SOLD: {
        DisplayAction.ACTIVATE: DisplayStatus.ACTIVE,
        DisplayAction.DEACTIVATE: DisplayStatus.INACTIVE,
    },
    DisplayStatus.ACTIVE: {
        DisplayAction.RESET: DisplayStatus.INVENTORY,
        DisplayAction.DEACTIVATE: DisplayStatus.INACTIVE,
    },
    # An inactive display may still hold its store binding; reset clears it.
    DisplayStatus.INACTIVE: {
        DisplayAction.RESET: DisplayStatus.INVENTORY,
        DisplayAction.DEACTIVATE: DisplayStatus.INACTIVE,
    },
}

if set(_TRANSITIONS) != set(DisplayStatus):
    raise RuntimeError("Display transition table must cover every DisplayStatus")


def can_transition(status: DisplayStatus, action: DisplayAction) -> bool:
    return action in _TRANSITIONS[DisplayStatus(status)]


def _transition(display: Display, action: DisplayAction) -> DisplayStatus:
    """Apply the status change for `action` or raise ValidationError."""
    current = DisplayStatus(display.status)
    target = _TRANSITIONS[current].get(action)
    if target is None:
        raise ValidationError(
            f"Display {display.display_id} cannot {action.value} from status {current.value}"
        )
    display.status = target
    return target


def _lock_display(display_id: str) -> Display:
    display = lock_for_update(db.session.query(Display).filter_by(display_id=display_id)).first()
    if display is None:
        raise NotFoundError(f"Display {display_id} not found")
    return display


def _next_display_number(prefix: str) -> int:
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    rows = db.session.query(Display.display_id).filter(Display.display_id.like(f"{prefix}-%")).all()
    for (display_id,) in rows:
        match = pattern.match(display_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def resolve_entry_route(display: Display | DisplayStatus | str | None) -> EntryRoute:
    """Which customer flow a QR scan lands on. Unknown states fall back to activation."""
    status = display.status if isinstance(display, Display) else display
    if status == DisplayStatus.ACTIVE:
        return EntryRoute.SAMPLE
    return EntryRoute.ACTIVATION


def create_displays(owner_org_id: int, count: int, *, prefix: str | None = None) -> list[Display]:
    """
    Bulk-create displays in inventory with sequential ids (QRD-001, QRD-002, ...).

    Raises:
        NotFoundError: owner organization missing
        ValidationError: count outside 1..MAX_DISPLAYS_PER_BATCH
    """
    count = require_positive_quantity("count", count)
    if count > MAX_DISPLAYS_PER_BATCH:
        raise ValidationError(f"count cannot exceed {MAX_DISPLAYS_PER_BATCH}")
    prefix = (prefix or current_app.config.get("DISPLAY_ID_PREFIX", "QRD")).strip().upper()
    if not re.fullmatch(r"[A-Z0-9]{1,16}", prefix):
        raise ValidationError("prefix must be 1-16 letters or digits")

    with unit_of_work("create_displays", owner_org_id=owner_org_id, count=count):
        get_organization(owner_org_id)
        start = _next_display_number(prefix)
        displays = [
            Display(
                display_id=f"{prefix}-{number:03d}",
                status=DisplayStatus.INVENTORY,
                owner_org_id=owner_org_id,
            )
            for number in range(start, start + count)
        ]
        db.session.add_all(displays)
        db.session.flush()

    current_app.logger.info(
        "Created %s display(s) %s..%s for org %s",
        count, displays[0].display_id, displays[-1].display_id, owner_org_id,
    )
    return displays


def assign_to_org(display_ids: list[str] | str, org_id: int) -> list[Display]:
    """
    Assign inventory displays to a brand organization (inventory -> sold).

    All-or-nothing: one display that is not in inventory fails the batch.
    """
    if isinstance(display_ids, str):
        display_ids = [display_ids]
    if not display_ids:
        raise ValidationError("display_ids cannot be empty")

    with unit_of_work("assign_to_org", org_id=org_id, count=len(display_ids)):
        get_organization(org_id)
        assigned = []
        for display_id in display_ids:
            display = _lock_display(display_id)
            _transition(display, DisplayAction.ASSIGN)
            display.assigned_org_id = org_id
            assigned.append(display)
        db.session.flush()
    return assigned


def activate(display_id: str, store_id: int) -> Display:
    """
    Bind a display to a store (inventory/sold -> active).

    The store must belong to the organization the display resolves to:
    owner_org_id while in inventory, assigned_org_id once sold.

    Raises:
        NotFoundError: display or store missing
        ValidationError: wrong status, already bound, or sold without an org
        UnauthorizedError: store belongs to another organization
    """
    with unit_of_work("activate_display", display_id=display_id, store_id=store_id) as uow:
        display = _lock_display(display_id)
        store = get_store(store_id)

        if display.store_id is not None:
            raise ValidationError("Display has already been activated")
        if not can_transition(display.status, DisplayAction.ACTIVATE):
            raise ValidationError(
                f"Display cannot be activated. Current status: {DisplayStatus(display.status).value}"
            )

        org_id = display.owner_org_id if display.status == DisplayStatus.INVENTORY else display.assigned_org_id
        if org_id is None:
            raise ValidationError("Display has not been assigned to an organization")
        if store.org_id != org_id:
            raise UnauthorizedError(
                f"Store {store.store_code} does not belong to the organization of display {display_id}"
            )

        _transition(display, DisplayAction.ACTIVATE)
        display.store_id = store.id
        display.activated_at = utcnow()
        db.session.flush()

        notify_after_commit(
            uow,
            CHANNEL_EMAIL,
            store.contact_email,
            f"Display {display.display_id} is now active at {store.name} ({store.store_code}).",
        )

    current_app.logger.info("Display %s activated at store %s", display_id, store.store_code)
    return display


def reset(display_id: str) -> Display:
    """
    Unbind a display from its store (active -> inventory), keeping assigned_org_id.

    Raises:
        NotFoundError: display missing
        ValidationError: display has no store binding
    """
    with unit_of_work("reset_display", display_id=display_id):
        display = _lock_display(display_id)
        if display.store_id is None:
            raise ValidationError("Display not activated")

        previous_store_id = display.store_id
        _transition(display, DisplayAction.RESET)
        display.store_id = None
        display.activated_at = None
        db.session.flush()

    current_app.logger.info("Display %s reset (was bound to store %s)", display_id, previous_store_id)
    return display


def set_inactive(display_id: str) -> Display:
    """Admin override: any status -> inactive. Other fields are left as they are."""
    with unit_of_work("deactivate_display", display_id=display_id):
        display = _lock_display(display_id)
        _transition(display, DisplayAction.DEACTIVATE)
        db.session.flush()
    return display


def get_display(display_id: str) -> Display:
    display = db.session.query(Display).filter_by(display_id=display_id).first()
    if display is None:
        raise NotFoundError(f"Display {display_id} not found")
    return display


def list_displays(
    *,
    status: DisplayStatus | str | None = None,
    assigned_org_id: int | None = None,
    store_id: int | None = None,
) -> list[Display]:
    query = db.session.query(Display)
    if status:
        try:
            status = DisplayStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Display.status == status)
    if assigned_org_id is not None:
        query = query.filter(Display.assigned_org_id == assigned_org_id)
    if store_id is not None:
        query = query.filter(Display.store_id == store_id)
    return query.order_by(Display.display_id.asc()).all()
