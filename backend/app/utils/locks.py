"""Bill locking: prevent edits to a bill once it leaves draft.

Each check function returns a LockInfo describing which fields are locked
and why, without raising exceptions.  The caller decides whether to block
the request based on which fields are being updated.
"""

from __future__ import annotations

from dataclasses import dataclass, field


# ── Data structures ────────────────────────────────────────────


@dataclass
class FieldLock:
    """A single locked field with reason and unlock instructions."""
    field: str
    reason: str
    blocker_type: str   # "bill_status"
    blocker_ref: str    # human-readable reference (e.g. "VR/2025-26/07")
    unlock_hint: str


@dataclass
class LockInfo:
    """Lock state for an entity.  Empty locked_fields means nothing locked."""
    locked_fields: dict[str, FieldLock] = field(default_factory=dict)

    @property
    def is_locked(self) -> bool:
        return len(self.locked_fields) > 0

    def check_update(self, updating_fields: set[str]) -> FieldLock | None:
        """Return the first FieldLock that conflicts, or None."""
        for f in sorted(updating_fields):
            if f in self.locked_fields:
                return self.locked_fields[f]
        return None

    def locked_field_names(self) -> list[str]:
        return list(self.locked_fields.keys())


def _add_locks(
    info: LockInfo,
    field_names: list[str],
    reason: str,
    blocker_type: str,
    blocker_ref: str,
    unlock_hint: str,
) -> None:
    for name in field_names:
        info.locked_fields[name] = FieldLock(
            field=name,
            reason=f"Cannot edit {name}: {reason}",
            blocker_type=blocker_type,
            blocker_ref=blocker_ref,
            unlock_hint=unlock_hint,
        )


# ── Bill locks (status-based, no DB query needed) ─────────────


BILL_DRAFT_ONLY_FIELDS = [
    "company_id", "payment_term_days", "hsn_code", "notes",
    "remove_challan_ids", "bill_number",
]


def get_bill_locks(bill) -> LockInfo:
    """Everything customizable on a bill is frozen once it is finalized."""
    info = LockInfo()

    if bill.status == "draft":
        return info

    _add_locks(
        info,
        BILL_DRAFT_ONLY_FIELDS,
        reason=f"bill {bill.bill_number} is {bill.status}",
        blocker_type="bill_status",
        blocker_ref=bill.bill_number,
        unlock_hint="Only draft bills can be customized.",
    )
    return info
