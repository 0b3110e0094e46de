"""Run ``SELECT 1`` against the configured database and report the result."""
import asyncio
import sys

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from erms.database import engine


async def check() -> bool:
    print(f"Connecting with the {engine.dialect.name} driver...")
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            print(f"✅ Database answered: {result.scalar()}")
            return True
    except SQLAlchemyError as e:
        print(f"❌ Connection failed: {e}")
        return False
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(check()) else 1)
