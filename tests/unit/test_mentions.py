"""@mention extraction and resolution."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from desperado.db.models import Mention
from desperado.notifications.mentions import extract_mentions, parse_mentions, persist_mentions, resolve_mentions


class TestExtract:
    def test_display_names_and_emails(self):
        """Both display names and email addresses are picked up."""
        text = "hey @donut, can you ask @carl@example.com."
        assert extract_mentions(text) == ["donut", "carl@example.com"]

    def test_deduplicates_in_order(self):
        """Repeats collapse, first occurrence wins."""
        assert extract_mentions("@donut @mordecai @donut") == ["donut", "mordecai"]

    def test_single_character_is_ignored(self):
        """One-character handles are not mentions."""
        assert extract_mentions("@a is not a mention") == []

    @pytest.mark.parametrize("text", [None, "", "no mentions here", "email me at carl @ home"])
    def test_nothing_to_extract(self, text):
        """Empty or mention-free text yields nothing."""
        assert extract_mentions(text) == []


class TestResolve:
    @pytest.mark.asyncio
    async def test_case_insensitive_display_name_and_email(self, db_session, user, make_user):
        """Names and emails match regardless of case."""
        donut = await make_user(display_name="Donut")
        resolved = await resolve_mentions(db_session, ["donut", "CARL@example.com", "ghost"])
        assert resolved == {"donut": donut.id, "CARL@example.com": user.id}

    @pytest.mark.asyncio
    async def test_parse_dedupes_user_ids(self, db_session, make_user):
        """Two handles for one user resolve to a single id."""
        donut = await make_user(display_name="donut", email="donut@example.com")
        mentions, user_ids = await parse_mentions(db_session, "@donut and @donut@example.com and @ghost")

        assert [m.identifier for m in mentions] == ["donut", "donut@example.com", "ghost"]
        assert mentions[2].user_id is None
        assert mentions[0].raw == "@donut"
        assert user_ids == [donut.id]

    @pytest.mark.asyncio
    async def test_persist_writes_one_row_per_user(self, db_session, user, make_user):
        """Each mentioned user gets one mention row."""
        from desperado.db.models import Comment

        donut = await make_user(display_name="donut")
        comment = Comment(entity_type="goal", entity_id="g-1", user_id=user.id, body="@donut")
        db_session.add(comment)
        await db_session.flush()

        assert await persist_mentions(db_session, comment.id, "goal", "g-1", [donut.id]) == 1
        rows = (await db_session.execute(select(Mention))).scalars().all()
        assert [(r.mentioned_user_id, r.entity_type, r.entity_id) for r in rows] == [(donut.id, "goal", "g-1")]

    @pytest.mark.asyncio
    async def test_persist_nothing(self, db_session, user):
        """No users, no rows."""
        assert await persist_mentions(db_session, user.id, "goal", "g-1", []) == 0
