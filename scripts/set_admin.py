"""
Grant admin rights to an existing user.

Adds the user to the administrators registry and sets role=admin, with an
audit event. Run from the project root:

    python scripts/set_admin.py someone@example.com
"""

import argparse
import asyncio
import sys

sys.path.insert(0, ".")

from dotenv import load_dotenv  # noqa: E402

load_dotenv(override=False)

from sqlalchemy import select, update  # noqa: E402

from confportal.database import async_session_maker, close_db  # noqa: E402
from confportal.kernel.events.event_store import EventStore  # noqa: E402
from confportal.kernel.models import Administrator, EventType, User, UserRole  # noqa: E402


async def grant_admin(email: str) -> int:
    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email.strip().lower()))
        user = result.scalar_one_or_none()
        if user is None:
            print(f"No user with email {email}")
            return 1

        if await session.get(Administrator, user.id) is None:
            session.add(Administrator(user_id=user.id))
        await session.execute(
            update(User).where(User.id == user.id).values(role=UserRole.ADMIN.value)
        )
        await EventStore(session).log(
            event_type=EventType.ADMIN_GRANTED,
            entity_type="user",
            entity_id=user.id,
            payload={"email": user.email, "source": "set_admin script"},
        )
        await session.commit()
        print(f"{user.email} is now an admin")
    await close_db()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Grant admin rights to a user")
    parser.add_argument("email")
    args = parser.parse_args()
    return asyncio.run(grant_admin(args.email))


if __name__ == "__main__":
    sys.exit(main())
