"""Seed script to populate database with a demo team."""

import asyncio
import sys

sys.path.insert(0, ".")

from sqlalchemy import select

from persona_insights.db import get_db_context, init_db
from persona_insights.models import Conversation, ConversationStatus, KeyInsight, Profile
from persona_insights.models.base import utcnow
from persona_insights.services.password import hash_password
from persona_insights.services.sharing import ensure_preferences, update_preferences
from persona_insights.services.team import add_member, promote_to_manager


async def seed_database():
    """Seed the database with sample data."""
    await init_db()

    async with get_db_context() as session:
        # Check if already seeded
        existing = await session.execute(select(Profile).limit(1))
        if existing.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        print("Seeding database...")

        alice = Profile(
            email="alice@example.com",
            display_name="Alice Johnson",
            hashed_password=hash_password("password123"),
        )
        bob = Profile(
            email="bob@example.com",
            display_name="Bob Smith",
            hashed_password=hash_password("password123"),
        )
        carol = Profile(
            email="carol@example.com",
            display_name="Carol Williams",
            hashed_password=hash_password("password123"),
        )
        session.add_all([alice, bob, carol])
        await session.flush()
        print(f"Created profiles: {alice.email}, {bob.email}, {carol.email}")

        promote_to_manager(alice, "Platform Team")
        for member in (bob, carol):
            await add_member(session, alice, member)
            await ensure_preferences(session, member.id, alice.id)
        print(f"Created team: {alice.team_name}")

        # Bob shares everything, Carol keeps the defaults
        await update_preferences(
            session,
            bob,
            alice.id,
            {
                "share_profile": True,
                "share_insights": True,
                "share_conversations": True,
                "share_ocean_profile": True,
                "share_progress": True,
            },
        )

        conversation = Conversation(
            profile_id=bob.id,
            title="Working style",
            status=ConversationStatus.COMPLETED,
            summary="Prefers async collaboration and clear written specs.",
            ocean_scores={
                "openness": 72,
                "conscientiousness": 81,
                "extraversion": 44,
                "agreeableness": 66,
                "neuroticism": 30,
            },
            completed_at=utcnow(),
        )
        session.add(conversation)
        await session.flush()
        session.add(KeyInsight(
            conversation_id=conversation.id,
            profile_id=bob.id,
            insights=["Thrives with autonomy", "Values detailed feedback"],
        ))
        print("Added a completed conversation for Bob")

    print("\nDatabase seeded successfully!")
    print("\nDemo accounts:")
    print("  Email: alice@example.com  Password: password123 (manager)")
    print("  Email: bob@example.com    Password: password123 (shares everything)")
    print("  Email: carol@example.com  Password: password123 (private defaults)")


if __name__ == "__main__":
    asyncio.run(seed_database())
