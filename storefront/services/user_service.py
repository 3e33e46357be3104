from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import UserDoesNotExist
from storefront.models.user import User


async def ensure_user_exists(db: AsyncSession, user_id: str) -> None:
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.first() is None:
        raise UserDoesNotExist()


async def create_user(db: AsyncSession, username: str, name: str | None = None) -> User:
    user = User(username=username, name=name)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
