"""Onboarding API endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.auth.dependencies import get_current_household_id, get_current_user
from desperado.config import get_settings
from desperado.database import get_session
from desperado.db.models import OnboardingQuestion, OnboardingState, User
from desperado.onboarding import service
from desperado.onboarding.schemas import (
    AdvanceRequest,
    AnswerResponse,
    OnboardingResponse,
    OnboardingStateResponse,
    QuestionResponse,
    RespondRequest,
    RespondResponse,
    StartOnboardingRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Onboarding"])


def _question(q: OnboardingQuestion | None) -> QuestionResponse | None:
    if q is None:
        return None
    return QuestionResponse(
        question_key=q.question_key,
        question_text=q.question_text,
        category=q.category,
        sort_order=q.sort_order,
    )


def _state(s: OnboardingState) -> OnboardingStateResponse:
    return OnboardingStateResponse(
        id=s.id,
        current_phase=s.current_phase,
        current_question_index=s.current_question_index,
        track=s.track,
        interview_completed_at=s.interview_completed_at,
        observation_started_at=s.observation_started_at,
        observation_ends_at=s.observation_ends_at,
        refinement_completed_at=s.refinement_completed_at,
    )


async def _require_state(db: AsyncSession, user_id: uuid.UUID, household_id: uuid.UUID) -> OnboardingState:
    state = await service.get_state(db, user_id, household_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Onboarding not started")
    return state


@router.get("/onboarding", response_model=OnboardingResponse)
async def get_onboarding(
    user: User = Depends(get_current_user),
    household_id: uuid.UUID = Depends(get_current_household_id),
    db: AsyncSession = Depends(get_session),
):
    """Current phase, plus the current question (interview) or next deferred question (quick track)."""
    state = await service.get_state(db, user.id, household_id)
    if state is None:
        return OnboardingResponse(phase=service.PHASE_NOT_STARTED, message="Onboarding not started. POST to begin.")

    if state.current_phase == service.PHASE_INTERVIEW:
        questions = await service.get_interview_questions(db)
        responses = await service.get_responses(db, state.id)
        current = questions[state.current_question_index] if state.current_question_index < len(questions) else None
        return OnboardingResponse(
            state=_state(state),
            phase=state.current_phase,
            track=state.track,
            current_question=_question(current),
            total_questions=len(questions),
            progress=service.progress_percent(state.current_question_index, len(questions)),
            responses=[
                AnswerResponse(
                    question_key=r.question_key,
                    raw_response=r.raw_response,
                    extracted_data=r.extracted_data or {},
                    reviewed_by_user=r.reviewed_by_user,
                )
                for r in responses
            ],
        )

    if state.track == service.TRACK_QUICK and state.current_phase == service.PHASE_ACTIVE:
        deferred, remaining = await service.next_deferred_question(db, state)
        return OnboardingResponse(
            state=_state(state),
            phase=state.current_phase,
            track=state.track,
            deferred_question=_question(deferred),
            deferred_remaining=remaining,
        )

    return OnboardingResponse(state=_state(state), phase=state.current_phase, track=state.track)


@router.post("/onboarding", response_model=OnboardingResponse, status_code=201)
async def start_onboarding(
    body: StartOnboardingRequest,
    user: User = Depends(get_current_user),
    household_id: uuid.UUID = Depends(get_current_household_id),
    db: AsyncSession = Depends(get_session),
):
    state = await service.start_onboarding(
        db, user.id, household_id, body.track, body.display_name, body.metadata
    )
    await db.commit()

    if state.track == service.TRACK_QUICK:
        return OnboardingResponse(
            state=_state(state),
            phase=state.current_phase,
            track=state.track,
            message="You're in! Zev will get to know you gradually over the next few sessions.",
        )

    questions = await service.get_interview_questions(db)
    return OnboardingResponse(
        state=_state(state),
        phase=state.current_phase,
        track=state.track,
        current_question=_question(questions[0] if questions else None),
        total_questions=len(questions),
        message="Onboarding started. Let's get to know you.",
    )


@router.post("/onboarding/respond", response_model=RespondResponse)
async def respond(
    body: RespondRequest,
    user: User = Depends(get_current_user),
    household_id: uuid.UUID = Depends(get_current_household_id),
    db: AsyncSession = Depends(get_session),
):
    state = await _require_state(db, user.id, household_id)
    result = await service.submit_response(
        db,
        state,
        body.response.strip(),
        extracted_data=body.extracted_data,
        confidence=body.confidence,
        question_key=body.question_key,
        channel=body.channel,
    )
    await db.commit()

    message = None
    if result.interview_complete and state.track == service.TRACK_FULL:
        days = get_settings().observation_window_days
        message = f"Interview complete! Entering observation phase. I'll watch and learn for the next {days} days."

    return RespondResponse(
        question_key=result.response.question_key,
        next_question=_question(result.next_question),
        interview_complete=result.interview_complete,
        progress=result.progress,
        observations_generated=result.observations_generated,
        message=message,
    )


@router.post("/onboarding/advance", response_model=OnboardingResponse)
async def advance(
    body: AdvanceRequest,
    user: User = Depends(get_current_user),
    household_id: uuid.UUID = Depends(get_current_household_id),
    db: AsyncSession = Depends(get_session),
):
    state = await _require_state(db, user.id, household_id)
    state = await service.advance_phase(db, state, body.target_phase)
    await db.commit()
    return OnboardingResponse(
        state=_state(state),
        phase=state.current_phase,
        track=state.track,
        message=f"Advanced to {state.current_phase} phase",
    )
