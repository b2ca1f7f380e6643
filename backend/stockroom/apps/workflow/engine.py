from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from stockroom import errors
from stockroom.apps.audit import services as audit_services

from .registry import WORKFLOWS

logger = logging.getLogger(__name__)


def allowed_transitions(entity_type: str, from_state: str) -> List[str]:
    workflow = WORKFLOWS.get(entity_type, {})
    return sorted(workflow.get("transitions", {}).get(from_state, {}))


def _payload(obj: Any, state: str) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"status": state}
    if isinstance(obj, dict):
        payload.update({k: v for k, v in obj.items() if k not in ("items", "owner_id")})
    return payload


def apply_transition(
    db: Session,
    *,
    owner_id: str,
    entity_type: str,
    entity_id: str,
    from_state: str,
    to_state: str,
    before_obj: Any = None,
    after_obj: Any = None,
    metadata: Optional[Dict[str, Any]] = None,
    critical: bool = True,
) -> None:
    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise errors.ValidationError(
            f"No workflow registered for {entity_type}",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    guards = workflow.get("transitions", {}).get(from_state, {}).get(to_state)
    if guards is None:
        logger.warning(
            "Rejected state transition",
            extra={
                "owner_id": owner_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "from_state": from_state,
                "to_state": to_state,
            },
        )
        raise errors.InvalidStateTransitionError(entity_id, from_state=from_state, to_state=to_state)

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
            )
        )
    if failures:
        raise errors.ValidationError(
            f"Missing requirements for {from_state} -> {to_state}",
            entity_id=entity_id,
            detail=failures,
        )

    audit_services.log_event(
        db,
        owner_id=owner_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=_payload(before_obj, from_state),
        after=_payload(after_obj, to_state),
        metadata={"workflow": entity_type, **(metadata or {})},
        critical=critical,
    )
