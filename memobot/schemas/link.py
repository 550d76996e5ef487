from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LinkCodeRead(BaseModel):
    code: str
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)
