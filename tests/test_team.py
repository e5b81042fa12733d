"""Tests for team membership, capacity and role transitions."""

import pytest
from sqlalchemy import select

from persona_insights.errors import Conflict, NotFound, TeamFull, ValidationError
from persona_insights.models.notification import Notification, NotificationType
from persona_insights.models.profile import ProfileRole
from persona_insights.services import team
from persona_insights.services.capabilities import resolve_capabilities
from persona_insights.services.team import (
    _first_free_slot,
    add_member,
    count_members,
    demote_to_employee,
    get_teams_for_member,
    leave_team,
    list_members,
    promote_to_manager,
    remove_member,
)
from persona_insights.settings import settings


@pytest.fixture
async def manager(make_profile):
    return await make_profile("morgan@example.com", "Morgan")


async def _members(make_profile, count: int, prefix: str = "member"):
    return [await make_profile(f"{prefix}{i}@example.com", f"Member {i}") for i in range(count)]


class TestFirstFreeSlot:
    def test_empty_team(self):
        assert _first_free_slot(set(), 10) == 1

    def test_fills_gaps_first(self):
        assert _first_free_slot({1, 2, 4}, 10) == 3

    def test_full(self):
        assert _first_free_slot(set(range(1, 11)), 10) is None


class TestRoleTransitions:
    async def test_promote_uses_default_team_name(self, manager):
        assert promote_to_manager(manager) is True

        assert manager.role == ProfileRole.MANAGER
        assert manager.can_manage_teams is True
        assert manager.team_name == "Morgan's Team"

    async def test_promote_with_explicit_name(self, manager):
        promote_to_manager(manager, "  Growth  ")

        assert manager.team_name == "Growth"

    async def test_promote_twice_reports_no_change(self, manager):
        promote_to_manager(manager)

        assert promote_to_manager(manager) is False

    async def test_demote_clears_manager_fields(self, manager):
        promote_to_manager(manager, "Growth")
        demote_to_employee(manager)

        assert manager.role == ProfileRole.EMPLOYEE
        assert manager.team_name is None
        assert manager.can_manage_teams is False


class TestAddMember:
    async def test_assigns_ascending_slots(self, db, make_profile, manager):
        members = await _members(make_profile, 3)

        slots = [(await add_member(db, manager, m)).slot for m in members]

        assert slots == [1, 2, 3]
        assert await count_members(db, manager.id) == 3

    async def test_adding_twice_is_a_no_op(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com")

        first = await add_member(db, manager, sam)
        second = await add_member(db, manager, sam)

        assert first.id == second.id
        assert await count_members(db, manager.id) == 1

    async def test_cannot_join_own_team(self, db, manager):
        with pytest.raises(ValidationError):
            await add_member(db, manager, manager)

    async def test_full_team_raises_without_mutation(self, db, make_profile, manager):
        for member in await _members(make_profile, settings.team_max_members):
            await add_member(db, manager, member)
        late = await make_profile("late@example.com")

        with pytest.raises(TeamFull):
            await add_member(db, manager, late)

        assert await count_members(db, manager.id) == settings.team_max_members

    async def test_freed_slot_is_reused(self, db, make_profile, manager):
        first, second, third = await _members(make_profile, 3)
        for member in (first, second, third):
            await add_member(db, manager, member)
        promote_to_manager(manager)

        await remove_member(db, manager, second.id)
        newcomer = await make_profile("new@example.com")
        membership = await add_member(db, manager, newcomer)

        assert membership.slot == 2
        assert [m.slot for m, _ in await list_members(db, manager.id)] == [1, 2, 3]

    async def test_member_can_belong_to_several_teams(self, db, make_profile, manager):
        other = await make_profile("other@example.com", "Olive")
        sam = await make_profile("sam@example.com")

        await add_member(db, manager, sam)
        await add_member(db, other, sam)

        teams = await get_teams_for_member(db, sam.id)
        assert {m.id for _, m in teams} == {manager.id, other.id}

    async def test_slot_race_is_a_conflict(self, db, make_profile, manager, monkeypatch):
        first, second = await _members(make_profile, 2)
        await add_member(db, manager, first)
        await db.commit()
        manager_id = manager.id

        # A stale read of the taken slots hands out slot 1 again
        monkeypatch.setattr(team, "_first_free_slot", lambda taken, capacity: 1)

        with pytest.raises(Conflict):
            await add_member(db, manager, second)
        await db.rollback()

        assert await count_members(db, manager_id) == 1


class TestRemoveAndLeave:
    async def test_remove_last_member_demotes_manager(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com", "Sam")
        await add_member(db, manager, sam)
        promote_to_manager(manager)

        result = await remove_member(db, manager, sam.id)

        assert result.removed_member_name == "Sam"
        assert result.was_last_member is True
        assert manager.role == ProfileRole.EMPLOYEE
        assert manager.team_name is None

        capabilities = await resolve_capabilities(db, manager)
        assert capabilities.is_manager is False
        assert capabilities.can_access_manager_dashboard is False

        notice = await db.scalar(select(Notification).where(Notification.profile_id == sam.id))
        assert notice.type == NotificationType.TEAM_MEMBER_REMOVED

    async def test_remove_keeps_manager_while_members_remain(self, db, make_profile, manager):
        first, second = await _members(make_profile, 2)
        await add_member(db, manager, first)
        await add_member(db, manager, second)
        promote_to_manager(manager)

        result = await remove_member(db, manager, first.id)

        assert result.was_last_member is False
        assert manager.role == ProfileRole.MANAGER
        assert (await resolve_capabilities(db, manager)).can_access_manager_dashboard is True

    async def test_remove_requires_manager_role(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com")

        with pytest.raises(ValidationError):
            await remove_member(db, manager, sam.id)

    async def test_remove_unknown_member(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com")
        await add_member(db, manager, sam)
        promote_to_manager(manager)

        with pytest.raises(NotFound):
            await remove_member(db, manager, 9999)

    async def test_leave_team_notifies_and_demotes(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com", "Sam")
        await add_member(db, manager, sam)
        promote_to_manager(manager)

        demoted = await leave_team(db, sam, manager.id)

        assert demoted is True
        assert manager.role == ProfileRole.EMPLOYEE
        assert await count_members(db, manager.id) == 0
        notice = await db.scalar(select(Notification).where(Notification.profile_id == manager.id))
        assert notice.type == NotificationType.TEAM_MEMBER_LEFT

    async def test_leave_team_not_a_member(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com")

        with pytest.raises(NotFound):
            await leave_team(db, sam, manager.id)


class TestCapabilities:
    async def test_flag_without_members_is_not_enough(self, db, manager):
        promote_to_manager(manager)

        capabilities = await resolve_capabilities(db, manager)

        assert capabilities.is_manager is True
        assert capabilities.has_team_members is False
        assert capabilities.can_access_manager_dashboard is False

    async def test_members_without_flag_is_not_enough(self, db, make_profile, manager):
        sam = await make_profile("sam@example.com")
        await add_member(db, manager, sam)

        capabilities = await resolve_capabilities(db, manager)

        assert capabilities.has_team_members is True
        assert capabilities.can_access_manager_dashboard is False

    async def test_to_dict(self, db, manager):
        data = (await resolve_capabilities(db, manager)).to_dict()

        assert data == {
            "is_manager": False,
            "has_team_members": False,
            "member_count": 0,
            "capacity": settings.team_max_members,
            "can_access_manager_dashboard": False,
        }
