"""Seed demo owners, their pets and one approved sitter for local development."""
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from app.database import dispose_engine, get_session_factory
from app.models import Pet, Sitter, User


DEMO_OWNERS = [
    {
        "email": "mina@example.com",
        "full_name": "Mina Park",
        "pets": [
            {"name": "Bori", "species": "dog", "breed": "Jindo", "age": 3, "gender": "female"},
        ],
    },
    {
        "email": "jun@example.com",
        "full_name": "Jun Lee",
        "pets": [
            {"name": "Kongi", "species": "dog", "breed": "Maltese", "age": 5, "gender": "male"},
            {"name": "Nabi", "species": "cat", "breed": "Korean Shorthair", "age": 2},
        ],
    },
    {
        "email": "sora@example.com",
        "full_name": "Sora Kim",
        "pets": [
            {"name": "Dubu", "species": "dog", "breed": "Shiba Inu", "age": 4, "gender": "male"},
        ],
    },
]

DEMO_SITTER = {
    "email": "sitter@example.com",
    "full_name": "Hana Choi",
    "service_area": "Seoul Mapo-gu",
    "introduction": "Dog walker and house sitter with five years of experience.",
    "price_per_hour": 500.0,
}


async def seed():
    async with get_session_factory()() as session:
        for owner in DEMO_OWNERS:
            existing = await session.execute(select(User).where(User.email == owner["email"]))
            if existing.scalar_one_or_none() is not None:
                print(f"  Owner {owner['email']} already exists, skipping.")
                continue
            user = User(email=owner["email"], full_name=owner["full_name"])
            session.add(user)
            await session.flush()
            for pet in owner["pets"]:
                session.add(Pet(owner_id=user.id, **pet))
            print(f"  Seeded {owner['full_name']} with {len(owner['pets'])} pet(s)")

        existing = await session.execute(select(User).where(User.email == DEMO_SITTER["email"]))
        if existing.scalar_one_or_none() is None:
            user = User(
                email=DEMO_SITTER["email"],
                full_name=DEMO_SITTER["full_name"],
                user_type="sitter",
            )
            session.add(user)
            await session.flush()
            session.add(
                Sitter(
                    id=user.id,
                    service_area=DEMO_SITTER["service_area"],
                    introduction=DEMO_SITTER["introduction"],
                    price_per_hour=DEMO_SITTER["price_per_hour"],
                    is_approved=True,
                )
            )
            print(f"  Seeded approved sitter {DEMO_SITTER['full_name']}")
        else:
            print(f"  Sitter {DEMO_SITTER['email']} already exists, skipping.")
        await session.commit()
    await dispose_engine()
    print("Done seeding demo data.")


if __name__ == "__main__":
    asyncio.run(seed())
