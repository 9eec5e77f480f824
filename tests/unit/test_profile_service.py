"""Crawler profile display updates."""

from __future__ import annotations

import pytest

from desperado.gamification.profile_service import update_profile
from desperado.gamification.xp_service import get_profile


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_trims_and_truncates(self, db_session, user):
        """Names and titles are stripped and cut to 50 characters."""
        profile = await update_profile(
            db_session, user.id, {"crawler_name": "  " + "C" * 60 + "  ", "title": "  Compeller of Stairs  "}
        )
        assert profile.crawler_name == "C" * 50
        assert profile.title == "Compeller of Stairs"

    @pytest.mark.asyncio
    async def test_showcase_capped_at_five(self, db_session, user):
        """Only the first five showcase ids are kept."""
        ids = [f"a{i}" for i in range(8)]
        profile = await update_profile(db_session, user.id, {"showcase_achievement_ids": ids})
        assert profile.showcase_achievement_ids == ids[:5]

    @pytest.mark.asyncio
    async def test_blank_title_clears_it(self, db_session, user):
        """A blank or null title removes it."""
        await update_profile(db_session, user.id, {"title": "Ringmaster"})
        profile = await update_profile(db_session, user.id, {"title": "   "})
        assert profile.title is None

        await update_profile(db_session, user.id, {"title": "Ringmaster"})
        profile = await update_profile(db_session, user.id, {"title": None})
        assert profile.title is None

    @pytest.mark.asyncio
    async def test_omitted_fields_untouched(self, db_session, user):
        """Fields not supplied keep their values."""
        await update_profile(db_session, user.id, {"title": "Ringmaster"})
        await update_profile(db_session, user.id, {"crawler_name": "Carl the Barbarian"})

        profile = await get_profile(db_session, user.id)
        assert profile.crawler_name == "Carl the Barbarian"
        assert profile.title == "Ringmaster"
        assert profile.total_xp == 0

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, db_session, user):
        """An empty change set is rejected."""
        with pytest.raises(ValueError, match="No valid updates"):
            await update_profile(db_session, user.id, {})

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, db_session, user):
        """A whitespace-only crawler name is rejected."""
        with pytest.raises(ValueError, match="blank"):
            await update_profile(db_session, user.id, {"crawler_name": "   "})
