"""Tests for the sharing gate and cached team analytics."""

import pytest
from sqlalchemy import select

from persona_insights.errors import NotFound, ValidationError
from persona_insights.models.base import utcnow
from persona_insights.models.conversation import Conversation, ConversationStatus, KeyInsight
from persona_insights.models.sharing_preference import SharingPreference
from persona_insights.services import sharing
from persona_insights.services.analytics import team_analytics
from persona_insights.services.sharing import (
    average_ocean,
    default_preferences,
    ensure_preferences,
    get_preferences,
    project_member_data,
    update_preferences,
)
from persona_insights.services.team import add_member, promote_to_manager
from persona_insights.services.team_cache import TeamCache


@pytest.fixture
async def team(db, make_profile):
    """A manager with one member who has a completed conversation."""
    manager = await make_profile("morgan@example.com", "Morgan")
    sam = await make_profile("sam@example.com", "Sam", full_name="Sam Rivera")
    await add_member(db, manager, sam)
    promote_to_manager(manager)
    await ensure_preferences(db, sam.id, manager.id)

    conversation = Conversation(
        profile_id=sam.id,
        title="Kickoff",
        status=ConversationStatus.COMPLETED,
        summary="Likes pairing",
        ocean_scores={"openness": 80, "conscientiousness": 60},
        completed_at=utcnow(),
    )
    db.add(conversation)
    await db.flush()
    db.add(KeyInsight(conversation_id=conversation.id, profile_id=sam.id, insights=["Prefers pairing"]))
    db.add(Conversation(profile_id=sam.id, title="Follow-up"))
    await db.commit()
    return manager, sam


class TestDefaults:
    def test_private_by_default(self):
        assert default_preferences() == {
            "share_profile": False,
            "share_insights": False,
            "share_conversations": False,
            "share_ocean_profile": False,
            "share_progress": False,
        }

    def test_shared_policy(self, monkeypatch):
        monkeypatch.setattr(sharing.settings, "sharing_default_policy", "shared")

        assert all(default_preferences().values())

    def test_always_share_ocean(self, monkeypatch):
        monkeypatch.setattr(sharing.settings, "sharing_always_share_ocean", True)

        flags = default_preferences()
        assert flags["share_ocean_profile"] is True
        assert flags["share_insights"] is False

    async def test_seeding_never_overwrites(self, db, team):
        manager, sam = team
        await update_preferences(db, sam, manager.id, {"share_insights": True})

        await ensure_preferences(db, sam.id, manager.id)

        assert (await get_preferences(db, sam.id, manager.id))["share_insights"] is True


class TestUpdatePreferences:
    async def test_updates_only_given_flags(self, db, team):
        manager, sam = team

        flags = await update_preferences(db, sam, manager.id, {"share_progress": True})

        assert flags["share_progress"] is True
        assert flags["share_profile"] is False

    async def test_unknown_category(self, db, team):
        manager, sam = team

        with pytest.raises(ValidationError):
            await update_preferences(db, sam, manager.id, {"share_salary": True})

    async def test_must_be_on_the_team(self, db, make_profile, team):
        manager, _ = team
        outsider = await make_profile("out@example.com")

        with pytest.raises(NotFound):
            await update_preferences(db, outsider, manager.id, {"share_progress": True})


class TestProjection:
    async def test_nothing_shared_returns_only_hidden(self, db, team):
        manager, sam = team

        data = await project_member_data(db, manager, sam.id)

        assert data["member_id"] == sam.id
        assert data["display_name"] == "Sam"
        assert set(data["hidden"]) == {"profile", "insights", "conversations", "ocean_profile", "progress"}
        for section in ("profile", "insights", "conversations", "ocean_profile", "progress"):
            assert section not in data

    async def test_only_shared_sections_are_loaded(self, db, team):
        manager, sam = team
        await update_preferences(db, sam, manager.id, {"share_insights": True, "share_progress": True})

        data = await project_member_data(db, manager, sam.id)

        assert data["insights"][0]["insights"] == ["Prefers pairing"]
        assert data["progress"] == {
            "total_conversations": 2,
            "completed_conversations": 1,
            "completion_rate": 0.5,
        }
        assert "conversations" not in data
        assert "ocean_profile" not in data
        assert set(data["hidden"]) == {"profile", "conversations", "ocean_profile"}

    async def test_everything_shared(self, db, team):
        manager, sam = team
        await update_preferences(
            db,
            sam,
            manager.id,
            {
                "share_profile": True,
                "share_insights": True,
                "share_conversations": True,
                "share_ocean_profile": True,
                "share_progress": True,
            },
        )

        data = await project_member_data(db, manager, sam.id)

        assert data["hidden"] == []
        assert data["profile"]["full_name"] == "Sam Rivera"
        assert {c["title"] for c in data["conversations"]} == {"Kickoff", "Follow-up"}
        assert data["ocean_profile"] == {"openness": 80.0, "conscientiousness": 60.0}

    async def test_other_managers_cannot_project(self, db, make_profile, team):
        _, sam = team
        stranger = await make_profile("stranger@example.com")

        with pytest.raises(NotFound):
            await project_member_data(db, stranger, sam.id)


class TestAverageOcean:
    def test_averages_per_trait(self):
        result = average_ocean([
            {"openness": 70, "neuroticism": 20},
            {"openness": 81, "neuroticism": None},
        ])

        assert result == {"openness": 75.5, "neuroticism": 20.0}

    def test_no_scores(self):
        assert average_ocean([]) is None


class TestTeamAnalytics:
    async def test_cached_until_team_changes(self, db, team):
        manager, sam = team
        await update_preferences(db, sam, manager.id, {"share_ocean_profile": True, "share_progress": True})

        first = await team_analytics(db, manager)
        second = await team_analytics(db, manager)

        assert first["cached"] is False
        assert second["cached"] is True
        assert first["member_count"] == 1
        assert first["ocean_contributors"] == 1
        assert first["team_ocean_profile"]["openness"] == 80.0
        assert first["members"][0]["progress"]["completed_conversations"] == 1

        db.add(Conversation(profile_id=sam.id, title="Another"))
        await db.flush()

        third = await team_analytics(db, manager)
        assert third["cached"] is False
        assert third["members"][0]["progress"]["total_conversations"] == 3

    async def test_unshared_members_do_not_contribute(self, db, team):
        manager, _ = team

        analytics = await team_analytics(db, manager)

        assert analytics["team_ocean_profile"] is None
        assert analytics["ocean_contributors"] == 0
        assert "progress" not in analytics["members"][0]

    async def test_new_member_invalidates(self, db, make_profile, team):
        manager, _ = team
        await team_analytics(db, manager)

        kim = await make_profile("kim@example.com")
        await add_member(db, manager, kim)

        analytics = await team_analytics(db, manager)
        assert analytics["cached"] is False
        assert analytics["member_count"] == 2

    async def test_revoked_sharing_is_not_served_from_cache(self, db, team):
        manager, sam = team
        await update_preferences(db, sam, manager.id, {"share_ocean_profile": True, "share_progress": True})
        await db.commit()
        await team_analytics(db, manager)

        await update_preferences(db, sam, manager.id, {"share_ocean_profile": False, "share_progress": False})
        await db.commit()
        analytics = await team_analytics(db, manager)

        assert analytics["cached"] is False
        assert "progress" not in analytics["members"][0]
        assert analytics["team_ocean_profile"] is None
        assert analytics["ocean_contributors"] == 0

    async def test_changed_flags_miss_the_cache(self, db, team):
        manager, sam = team
        await update_preferences(db, sam, manager.id, {"share_progress": True})
        await team_analytics(db, manager)

        # Written without going through update_preferences
        row = await db.scalar(
            select(SharingPreference).where(
                SharingPreference.profile_id == sam.id,
                SharingPreference.manager_id == manager.id,
            )
        )
        row.share_progress = False
        await db.flush()

        analytics = await team_analytics(db, manager)
        assert analytics["cached"] is False
        assert "progress" not in analytics["members"][0]


class TestTeamCache:
    def test_fingerprint_mismatch_is_a_miss(self):
        cache = TeamCache(ttl_seconds=60)
        cache.set(1, "abc", {"member_count": 1})

        assert cache.get(1, "abc") == {"member_count": 1}
        assert cache.get(1, "xyz") is None

    def test_ttl_expiry(self):
        cache = TeamCache(ttl_seconds=0)
        cache.set(1, "abc", {"member_count": 1})

        assert cache.get(1, "abc") is None

    def test_invalidate(self):
        cache = TeamCache(ttl_seconds=60)
        cache.set(1, "abc", {})
        cache.invalidate(1)

        assert cache.get(1, "abc") is None
