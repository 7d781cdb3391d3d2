"""Permission system for ChallanBook RBAC.

Design:
  - Each role has a set of DEFAULT permissions (defined here, not in DB).
  - The auth service may grant/revoke individual permissions per user; the
    effective list is embedded in the JWT so checks are token-only.
  - `resolve_permissions(role, custom_overrides)` computes that list.

Permission naming: `<resource>.<action>`
  Resources: bills, payments, orders, buyers, stock
  Actions:   read, write, delete
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # Monthly bills
    "bills.read",
    "bills.write",          # generate, customize, finalize, send
    "bills.delete",         # delete draft bills

    # Payments against bills, buyers and challans
    "payments.write",
    "payments.delete",      # admin only: reverse a recorded payment

    # Wholesale orders (challans)
    "orders.read",
    "orders.write",

    # Buyers
    "buyers.read",

    # Stock pools and transfers
    "stock.read",
    "stock.write",
}


# ── Role → default permissions ──────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "admin": ALL_PERMISSIONS.copy(),

    "sales": {
        "bills.read",
        "bills.write",
        "payments.write",
        "orders.read", "orders.write",
        "buyers.read",
        "stock.read",
    },
}


# ── Resolution ──────────────────────────────────────────────

def resolve_permissions(
    role: str,
    custom_overrides: dict[str, bool] | None = None,
) -> list[str]:
    """Compute effective permissions for a user.

    1. Start with the role's defaults.
    2. Apply custom_overrides: {perm: True} adds, {perm: False} removes.
    3. Return a sorted list (for stable JWT claims).
    """
    base = ROLE_DEFAULTS.get(role, set()).copy()

    if custom_overrides:
        for perm, granted in custom_overrides.items():
            if perm not in ALL_PERMISSIONS:
                continue  # ignore unknown permissions
            if granted:
                base.add(perm)
            else:
                base.discard(perm)

    return sorted(base)


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return required in user_permissions
