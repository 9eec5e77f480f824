"""Pydantic request/response models for onboarding endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class StartOnboardingRequest(BaseModel):
    track: Literal["full", "quick"] = "full"
    display_name: str | None = Field(default=None, max_length=50)
    metadata: dict[str, Any] = {}


class RespondRequest(BaseModel):
    response: str = Field(min_length=1, max_length=5000)
    extracted_data: dict[str, Any] = {}
    confidence: float | None = Field(default=None, ge=0, le=1)
    question_key: str | None = None
    channel: Literal["web", "discord"] = "web"


class AdvanceRequest(BaseModel):
    target_phase: str | None = None


class QuestionResponse(BaseModel):
    question_key: str
    question_text: str
    category: str
    sort_order: int


class OnboardingStateResponse(BaseModel):
    id: uuid.UUID
    current_phase: str
    current_question_index: int
    track: str
    interview_completed_at: datetime | None = None
    observation_started_at: datetime | None = None
    observation_ends_at: datetime | None = None
    refinement_completed_at: datetime | None = None


class AnswerResponse(BaseModel):
    question_key: str
    raw_response: str
    extracted_data: dict[str, Any] = {}
    reviewed_by_user: bool


class OnboardingResponse(BaseModel):
    state: OnboardingStateResponse | None = None
    phase: str
    track: str | None = None
    current_question: QuestionResponse | None = None
    total_questions: int = 0
    progress: int = 0
    responses: list[AnswerResponse] = []
    deferred_question: QuestionResponse | None = None
    deferred_remaining: int | None = None
    message: str | None = None


class RespondResponse(BaseModel):
    question_key: str
    next_question: QuestionResponse | None = None
    interview_complete: bool
    progress: int
    observations_generated: int = 0
    message: str | None = None
