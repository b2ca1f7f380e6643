from __future__ import annotations

import pytest

from stockroom import errors
from stockroom.apps.audit import models as audit_models
from stockroom.apps.audit import services as audit_services
from stockroom.apps.workflow import allowed_transitions, apply_transition


def test_order_workflow_edges():
    assert allowed_transitions("order", "prepared") == ["deleted", "paid"]
    assert allowed_transitions("order", "paid") == ["sent"]
    assert allowed_transitions("order", "sent") == []
    assert allowed_transitions("unknown", "prepared") == []


def test_accepted_transition_is_audited(db_session, owner):
    apply_transition(
        db_session,
        owner_id=owner.id,
        entity_type="order",
        entity_id="order-1",
        from_state="prepared",
        to_state="paid",
        before_obj={"reference": "ORD-1"},
        after_obj={"reference": "ORD-1", "paid_at": "2026-01-01T00:00:00+00:00", "items": [("p", 1)]},
    )
    db_session.commit()

    events = audit_services.list_audit_events(db_session, owner_id=owner.id, entity_id="order-1")
    assert len(events) == 1
    event = events[0]
    assert event.action == "transition"
    assert event.before == {"status": "prepared", "reference": "ORD-1"}
    assert event.after == {"status": "paid", "reference": "ORD-1", "paid_at": "2026-01-01T00:00:00+00:00"}
    assert event.metadata_json == {"workflow": "order"}


def test_unknown_transition_is_rejected_without_audit(db_session, owner):
    with pytest.raises(errors.InvalidStateTransitionError) as excinfo:
        apply_transition(
            db_session,
            owner_id=owner.id,
            entity_type="order",
            entity_id="order-1",
            from_state="sent",
            to_state="prepared",
        )

    assert excinfo.value.status_code == 409
    assert db_session.query(audit_models.AuditEvent).count() == 0


def test_guards_report_missing_requirements(db_session, owner):
    with pytest.raises(errors.ValidationError) as excinfo:
        apply_transition(
            db_session,
            owner_id=owner.id,
            entity_type="order",
            entity_id="order-1",
            from_state="prepared",
            to_state="paid",
            after_obj={"items": []},
        )

    fields = {failure["field"] for failure in excinfo.value.detail}
    assert fields == {"items", "paid_at"}


def test_unregistered_workflow(db_session, owner):
    with pytest.raises(errors.ValidationError):
        apply_transition(
            db_session,
            owner_id=owner.id,
            entity_type="invoice",
            entity_id="inv-1",
            from_state="draft",
            to_state="sent",
        )
