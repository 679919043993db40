#!/usr/bin/env python3
"""
Initialize database with all tables
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from helpdesk.database import create_tables, engine
from helpdesk.models.base import Base


async def init_database():
    """Create all tables"""
    print("Initializing database...")

    await create_tables(engine)
    print(f"Tables: {', '.join([t.name for t in Base.metadata.sorted_tables])}")

    await engine.dispose()
    print("Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
