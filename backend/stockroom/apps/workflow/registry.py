from __future__ import annotations

from .guards import guard_order_has_items, guard_order_paid_at

# "deleted" is terminal: the row is removed once the transition is accepted.
WORKFLOWS = {
    "order": {
        "transitions": {
            "prepared": {
                "paid": [guard_order_has_items, guard_order_paid_at],
                "deleted": [],
            },
            "paid": {
                "sent": [],
            },
            "sent": {},
        }
    },
}
