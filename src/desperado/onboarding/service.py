"""Onboarding state machine.

Full track: interview -> observation (fixed window) -> refinement -> active.
Quick track: straight to active, interview questions are then deferred and
asked one per conversation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.config import get_settings
from desperado.db.models import HouseholdMember, OnboardingQuestion, OnboardingResponse, OnboardingState
from desperado.onboarding.observations import generate_observations

logger = logging.getLogger(__name__)

PHASE_NOT_STARTED = "not_started"
PHASE_INTERVIEW = "interview"
PHASE_OBSERVATION = "observation"
PHASE_REFINEMENT = "refinement"
PHASE_ACTIVE = "active"

PHASES = (PHASE_NOT_STARTED, PHASE_INTERVIEW, PHASE_OBSERVATION, PHASE_REFINEMENT, PHASE_ACTIVE)

# Automatic advancement; anything else needs an explicit target.
TRANSITIONS = {
    PHASE_OBSERVATION: PHASE_REFINEMENT,
    PHASE_REFINEMENT: PHASE_ACTIVE,
}

TRACK_FULL = "full"
TRACK_QUICK = "quick"


class OnboardingError(ValueError):
    """Invalid onboarding transition or answer."""


class OnboardingAlreadyStartedError(OnboardingError):
    pass


@dataclass
class SubmitResult:
    response: OnboardingResponse
    next_question: OnboardingQuestion | None
    interview_complete: bool
    progress: int
    observations_generated: int = 0


def progress_percent(answered: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(answered / total * 100)


async def get_state(db: AsyncSession, user_id: uuid.UUID, household_id: uuid.UUID) -> OnboardingState | None:
    result = await db.execute(
        select(OnboardingState).where(
            OnboardingState.user_id == user_id,
            OnboardingState.household_id == household_id,
        )
    )
    return result.scalar_one_or_none()


async def get_interview_questions(db: AsyncSession) -> list[OnboardingQuestion]:
    result = await db.execute(
        select(OnboardingQuestion)
        .where(OnboardingQuestion.phase == PHASE_INTERVIEW, OnboardingQuestion.active.is_(True))
        .order_by(OnboardingQuestion.sort_order.asc())
    )
    return list(result.scalars().all())


async def get_responses(db: AsyncSession, onboarding_id: uuid.UUID) -> list[OnboardingResponse]:
    result = await db.execute(
        select(OnboardingResponse)
        .where(OnboardingResponse.onboarding_id == onboarding_id)
        .order_by(OnboardingResponse.created_at.asc())
    )
    return list(result.scalars().all())


async def start_onboarding(
    db: AsyncSession,
    user_id: uuid.UUID,
    household_id: uuid.UUID,
    track: str = TRACK_FULL,
    display_name: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> OnboardingState:
    """Create the onboarding state. Quick-track users skip straight to active."""
    if await get_state(db, user_id, household_id) is not None:
        msg = "Onboarding already started"
        raise OnboardingAlreadyStartedError(msg)

    now = datetime.now(timezone.utc)
    metadata = dict(metadata or {})

    if track == TRACK_QUICK:
        if display_name:
            await db.execute(
                update(HouseholdMember)
                .where(HouseholdMember.user_id == user_id, HouseholdMember.household_id == household_id)
                .values(display_name=display_name)
            )
        state = OnboardingState(
            user_id=user_id,
            household_id=household_id,
            current_phase=PHASE_ACTIVE,
            current_question_index=0,
            track=TRACK_QUICK,
            state_metadata={"quick_start": True, **metadata},
            created_at=now,
            updated_at=now,
        )
    else:
        state = OnboardingState(
            user_id=user_id,
            household_id=household_id,
            current_phase=PHASE_INTERVIEW,
            current_question_index=0,
            track=TRACK_FULL,
            state_metadata=metadata,
            created_at=now,
            updated_at=now,
        )

    db.add(state)
    await db.flush()
    logger.info("Started %s onboarding for %s", state.track, user_id)
    return state


async def _already_answered(db: AsyncSession, onboarding_id: uuid.UUID, question_key: str) -> bool:
    result = await db.execute(
        select(OnboardingResponse.id).where(
            OnboardingResponse.onboarding_id == onboarding_id,
            OnboardingResponse.question_key == question_key,
        )
    )
    return result.first() is not None


async def _store_response(
    db: AsyncSession,
    state: OnboardingState,
    question: OnboardingQuestion,
    raw_response: str,
    extracted_data: dict[str, Any] | None,
    confidence: float | None,
    channel: str,
) -> OnboardingResponse:
    if await _already_answered(db, state.id, question.question_key):
        msg = f"Question {question.question_key} already answered"
        raise OnboardingError(msg)

    response = OnboardingResponse(
        user_id=state.user_id,
        onboarding_id=state.id,
        question_key=question.question_key,
        question_text=question.question_text,
        raw_response=raw_response,
        phase=PHASE_INTERVIEW,
        channel=channel,
        extracted_data=extracted_data or {},
        confidence=confidence,
        reviewed_by_user=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(response)
    await db.flush()
    return response


async def submit_response(
    db: AsyncSession,
    state: OnboardingState,
    raw_response: str,
    extracted_data: dict[str, Any] | None = None,
    confidence: float | None = None,
    question_key: str | None = None,
    channel: str = "web",
) -> SubmitResult:
    """Answer the current interview question, or a deferred one on the quick track.

    The last interview answer moves the state into observation for the
    configured window and generates observations from every answer.
    """
    questions = await get_interview_questions(db)

    if state.track == TRACK_QUICK and state.current_phase == PHASE_ACTIVE:
        if question_key is None:
            msg = "question_key is required for deferred questions"
            raise OnboardingError(msg)
        question = next((q for q in questions if q.question_key == question_key), None)
        if question is None:
            msg = f"Unknown question: {question_key}"
            raise OnboardingError(msg)
        response = await _store_response(db, state, question, raw_response, extracted_data, confidence, channel)
        _, remaining = await next_deferred_question(db, state)
        return SubmitResult(
            response=response,
            next_question=None,
            interview_complete=remaining == 0,
            progress=progress_percent(len(questions) - remaining, len(questions)),
        )

    if state.current_phase != PHASE_INTERVIEW:
        msg = "Not in interview phase"
        raise OnboardingError(msg)
    if state.current_question_index >= len(questions):
        msg = "No more questions"
        raise OnboardingError(msg)

    question = questions[state.current_question_index]
    response = await _store_response(db, state, question, raw_response, extracted_data, confidence, channel)

    now = datetime.now(timezone.utc)
    next_index = state.current_question_index + 1
    is_last = next_index >= len(questions)

    state.current_question_index = next_index
    state.updated_at = now
    if is_last:
        state.current_phase = PHASE_OBSERVATION
        state.interview_completed_at = now
        state.observation_started_at = now
        state.observation_ends_at = now + timedelta(days=get_settings().observation_window_days)
    await db.flush()

    generated = 0
    if is_last:
        observations = await generate_observations(db, state.user_id, state.household_id, state.id)
        generated = observations.created
        logger.info("Interview complete for %s; entering observation", state.user_id)

    return SubmitResult(
        response=response,
        next_question=None if is_last else questions[next_index],
        interview_complete=is_last,
        progress=progress_percent(next_index, len(questions)),
        observations_generated=generated,
    )


async def advance_phase(
    db: AsyncSession,
    state: OnboardingState,
    target_phase: str | None = None,
) -> OnboardingState:
    """Move to ``target_phase``, or to the next automatic phase."""
    if target_phase is not None:
        if target_phase not in PHASES:
            msg = f"target_phase must be one of: {', '.join(PHASES)}"
            raise OnboardingError(msg)
        target = target_phase
    else:
        target = TRANSITIONS.get(state.current_phase)
        if target is None:
            msg = f"Cannot advance from {state.current_phase}"
            raise OnboardingError(msg)

    now = datetime.now(timezone.utc)
    state.current_phase = target
    state.updated_at = now
    if target == PHASE_REFINEMENT:
        state.refinement_completed_at = None
    elif target == PHASE_ACTIVE:
        state.refinement_completed_at = now
    await db.flush()
    return state


async def next_deferred_question(
    db: AsyncSession,
    state: OnboardingState,
) -> tuple[OnboardingQuestion | None, int]:
    """The next unanswered interview question and how many remain."""
    answered = {r.question_key for r in await get_responses(db, state.id)}
    unanswered = [q for q in await get_interview_questions(db) if q.question_key not in answered]
    return (unanswered[0] if unanswered else None), len(unanswered)
