from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuditEventCreate(BaseModel):
    entity_type: str
    entity_id: str
    action: str
    occurred_at: Optional[datetime] = None
    before: Optional[dict] = None
    after: Optional[dict] = None
    metadata: Optional[dict] = None
