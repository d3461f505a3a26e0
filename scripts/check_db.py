"""Script to check the database connection and the pgvector clause library."""

import asyncio
import sys
import os

# Add the project root to sys.path to allow importing from 'app'
sys.path.append(os.getcwd())

from app.config import get_settings
from app.database import db
from core.retrieval.vector_store import PgVectorStore


async def check_clause_library():
    settings = get_settings()
    try:
        print("🔍 Attempting to connect to the database...")
        await db.connect()

        info = await db.server_info()
        print(f"✅ Connected to: {info['version']}")
        if not info["pgvector"]:
            print("⚠️  pgvector extension not installed yet; creating it with the table.")

        store = PgVectorStore(db.pool, settings.embedding_dimensions)
        await store.ensure_tables()
        print(f"✅ Table '{store.TABLE}' ready (vector({settings.embedding_dimensions})).")

        rows = await store.load_all()
        print(f"📚 Precedent clauses stored: {len(rows)}")
        for record, vector in rows[:5]:
            print(f"   - {record.id} [{record.clause_type.value}] dims={len(vector)}")

        await db.disconnect()
        print("✨ Database check complete!")
    except Exception as e:
        print(f"❌ Error checking the clause library: {e}")
        print("\nPossible issues:")
        print("1. Is the Postgres container running? (Run 'docker ps')")
        print("2. Is the DATABASE_URL in .env correct?")
        print("3. Does EMBEDDING_DIMENSIONS match the existing table?")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(check_clause_library())
