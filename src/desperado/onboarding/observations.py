"""Turns onboarding interview answers into typed AI observations.

Each known question key maps to one or more observation templates. Answers
to questions without an extractor still produce a generic ``context``
observation so nothing the crawler said is dropped.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import AiObservation, OnboardingResponse

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.7


@dataclass(frozen=True)
class ObservationTemplate:
    observation_type: str
    prefix: str
    confidence: float
    tags: tuple[str, ...]
    source_layer: str = "declared"
    inferred: bool = False

    def render(self, question_key: str, raw: str, extracted: dict[str, Any] | None) -> dict[str, Any]:
        if self.inferred:
            source_data: dict[str, Any] = {"question": question_key, "inferred": True}
        else:
            source_data = {"question": question_key, "extracted": extracted}
        return {
            "observation_type": self.observation_type,
            "content": f"{self.prefix}: {raw}",
            "confidence": self.confidence,
            "source_layer": self.source_layer,
            "source_data": source_data,
            "tags": list(self.tags),
        }


QUESTION_EXTRACTORS: dict[str, tuple[ObservationTemplate, ...]] = {
    "household_roles": (
        ObservationTemplate("relationship", "Household roles and dynamics", 0.9, ("household", "roles", "onboarding")),
    ),
    "daily_routine": (
        ObservationTemplate("routine", "Daily routine", 0.9, ("routine", "schedule", "onboarding")),
    ),
    "communication_style": (
        ObservationTemplate(
            "preference", "Communication preferences", 0.9, ("communication", "preference", "onboarding")
        ),
    ),
    "biggest_challenge": (
        ObservationTemplate("context", "Biggest current challenge", 0.85, ("challenge", "pain-point", "onboarding")),
    ),
    "goals_priorities": (
        ObservationTemplate("goal", "Goals and priorities", 0.9, ("goals", "priorities", "onboarding")),
    ),
    "financial_comfort": (
        ObservationTemplate(
            "preference", "Financial tracking comfort level", 0.85, ("finance", "comfort", "onboarding")
        ),
        ObservationTemplate(
            "boundary",
            "Financial sensitivity, be mindful of comfort level when discussing money",
            0.7,
            ("finance", "boundary", "onboarding"),
            source_layer="inferred",
            inferred=True,
        ),
    ),
    "pet_peeves": (
        ObservationTemplate(
            "boundary", "Things that annoy or frustrate them", 0.9, ("boundary", "preference", "onboarding")
        ),
    ),
    "motivation_style": (
        ObservationTemplate("personality", "What motivates them", 0.85, ("motivation", "personality", "onboarding")),
    ),
    "notification_preferences": (
        ObservationTemplate(
            "preference", "Notification preferences", 0.9, ("notifications", "preference", "onboarding")
        ),
    ),
    "household_division": (
        ObservationTemplate(
            "relationship",
            "How household work is divided",
            0.85,
            ("household", "division", "responsibilities", "onboarding"),
        ),
    ),
}


def extract_observations(
    question_key: str,
    raw_response: str,
    extracted: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Observation fields for one answer (without user/household ids)."""
    templates = QUESTION_EXTRACTORS.get(question_key)
    if templates is None:
        return [{
            "observation_type": "context",
            "content": f"Onboarding answer ({question_key}): {raw_response}",
            "confidence": FALLBACK_CONFIDENCE,
            "source_layer": "declared",
            "source_data": {"question": question_key},
            "tags": ["onboarding", question_key],
        }]
    return [t.render(question_key, raw_response, extracted or None) for t in templates]


@dataclass
class ObservationResult:
    created: int = 0
    errors: list[str] = field(default_factory=list)


async def generate_observations(
    db: AsyncSession,
    user_id: uuid.UUID,
    household_id: uuid.UUID | None,
    onboarding_id: uuid.UUID,
) -> ObservationResult:
    """Create observations from every stored response of an onboarding run."""
    result = ObservationResult()
    responses = (
        await db.execute(
            select(OnboardingResponse)
            .where(OnboardingResponse.onboarding_id == onboarding_id)
            .order_by(OnboardingResponse.created_at.asc())
        )
    ).scalars().all()

    rows: list[AiObservation] = []
    for response in responses:
        try:
            fields = extract_observations(response.question_key, response.raw_response, response.extracted_data)
        except Exception as exc:
            logger.warning("Observation extraction failed for %s", response.question_key, exc_info=True)
            result.errors.append(f"Failed to extract from {response.question_key}: {exc}")
            continue
        rows.extend(AiObservation(user_id=user_id, household_id=household_id, **f) for f in fields)

    if not rows:
        result.errors.append("No observations generated from responses")
        return result

    db.add_all(rows)
    await db.flush()
    result.created = len(rows)
    logger.info("Generated %d onboarding observations for %s", result.created, user_id)
    return result
