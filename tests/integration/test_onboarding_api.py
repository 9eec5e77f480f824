"""Onboarding API."""

from __future__ import annotations

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def household(make_household, user):
    return await make_household(user)


class TestOnboardingApi:
    @pytest.mark.asyncio
    async def test_requires_household(self, client, user, auth_headers):
        """Onboarding needs a household."""
        resp = await client.get("/api/v1/onboarding", headers=auth_headers(user))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_not_started(self, client, user, household, auth_headers):
        """A fresh household reports not_started."""
        resp = await client.get("/api/v1/onboarding", headers=auth_headers(user))
        assert resp.status_code == 200
        assert resp.json()["phase"] == "not_started"

    @pytest.mark.asyncio
    async def test_full_interview(self, client, user, household, auth_headers):
        """Answering every question moves to observation."""
        headers = auth_headers(user)

        started = await client.post("/api/v1/onboarding", headers=headers, json={})
        assert started.status_code == 201
        total = started.json()["total_questions"]
        assert started.json()["current_question"]["question_key"] == "daily_routine"

        for i in range(total):
            resp = await client.post("/api/v1/onboarding/respond", headers=headers, json={"response": f"answer {i}"})
            assert resp.status_code == 200

        done = resp.json()
        assert done["interview_complete"]
        assert done["progress"] == 100
        assert done["observations_generated"] == total
        assert "observation phase" in done["message"]

        state = (await client.get("/api/v1/onboarding", headers=headers)).json()
        assert state["phase"] == "observation"

        extra = await client.post("/api/v1/onboarding/respond", headers=headers, json={"response": "more"})
        assert extra.status_code == 400
        assert extra.json()["detail"] == "Not in interview phase"

        advanced = await client.post("/api/v1/onboarding/advance", headers=headers, json={})
        assert advanced.json()["phase"] == "refinement"

    @pytest.mark.asyncio
    async def test_interview_progress(self, client, user, household, auth_headers):
        """Each answer advances the question index."""
        headers = auth_headers(user)
        await client.post("/api/v1/onboarding", headers=headers, json={"track": "full"})
        await client.post("/api/v1/onboarding/respond", headers=headers, json={"response": "Up at six"})

        state = (await client.get("/api/v1/onboarding", headers=headers)).json()
        assert state["state"]["current_question_index"] == 1
        assert state["responses"][0]["question_key"] == "daily_routine"
        assert state["current_question"]["question_key"] == "work_schedule"

    @pytest.mark.asyncio
    async def test_start_twice_conflicts(self, client, user, household, auth_headers):
        """Starting twice is a conflict."""
        headers = auth_headers(user)
        assert (await client.post("/api/v1/onboarding", headers=headers, json={})).status_code == 201
        assert (await client.post("/api/v1/onboarding", headers=headers, json={})).status_code == 409

    @pytest.mark.asyncio
    async def test_quick_track(self, client, user, household, auth_headers):
        """Quick track defers the interview questions."""
        headers = auth_headers(user)
        started = await client.post(
            "/api/v1/onboarding", headers=headers, json={"track": "quick", "display_name": "Crawler Carl"}
        )
        assert started.json()["phase"] == "active"

        state = (await client.get("/api/v1/onboarding", headers=headers)).json()
        assert state["deferred_question"]["question_key"] == "daily_routine"
        remaining = state["deferred_remaining"]

        missing_key = await client.post("/api/v1/onboarding/respond", headers=headers, json={"response": "hi"})
        assert missing_key.status_code == 400

        answered = await client.post(
            "/api/v1/onboarding/respond",
            headers=headers,
            json={"response": "Up at six", "question_key": "daily_routine"},
        )
        assert answered.status_code == 200
        assert answered.json()["message"] is None

        state = (await client.get("/api/v1/onboarding", headers=headers)).json()
        assert state["deferred_remaining"] == remaining - 1
        assert state["deferred_question"]["question_key"] == "work_schedule"

    @pytest.mark.asyncio
    async def test_respond_before_start(self, client, user, household, auth_headers):
        """Answering before starting is 404."""
        resp = await client.post("/api/v1/onboarding/respond", headers=auth_headers(user), json={"response": "hi"})
        assert resp.status_code == 404
