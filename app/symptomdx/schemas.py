"""Pydantic schemas for symptomdx endpoints and internal contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, Field

from symptomdx.utils import utc_now


SourceMode = Literal["remote", "local"]


class ChatRecord(BaseModel):
    chat_id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str = Field(validation_alias=AliasChoices("user_id", "user", "userId"))
    title: str = ""
    symptoms: list[str] = Field(default_factory=list)
    diagnosis: str = ""
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DiagnosisResult(BaseModel):
    diagnosis_text: str
    source_mode: SourceMode
    category: str | None = None
    context_rules: list[str] = Field(default_factory=list)
    latency_ms: dict[str, int] = Field(default_factory=dict)


class ClassifyRequest(BaseModel):
    text: str


class ClassifyResponse(BaseModel):
    text: str
    is_symptom: bool


class DiagnosisRequest(BaseModel):
    text: str = Field(validation_alias=AliasChoices("text", "content", "symptoms"))
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId", "user"))


class TitleRequest(BaseModel):
    text: str


class TitleResponse(BaseModel):
    title: str
