from __future__ import annotations

from typing import Optional
from pydantic import BaseModel


class ChatReply(BaseModel):
    content: str
    notice: Optional[str] = None


class ErrorReply(BaseModel):
    error: str
