import asyncio
import asyncpg
import sys
from dotenv import load_dotenv

# Load env vars before settings are read
load_dotenv(".env")

from backend.app.core.config import settings

EXPECTED_TABLES = {"users", "trips", "matches", "notifications", "dead_letter_queue"}

# asyncpg connect needs dsn without +asyncpg
db_url = settings.database_url.replace("+asyncpg", "")

print(f"Testing connection to: {db_url.split('@')[-1]}")

async def check_db():
    try:
        conn = await asyncpg.connect(db_url)
    except Exception as e:
        print(f"❌ Connection Failed: {e}")
        sys.exit(1)

    try:
        print("✅ Connection Successful!")
        rows = await conn.fetch(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        )
        missing = EXPECTED_TABLES - {row["table_name"] for row in rows}
        if missing:
            print(f"⚠️  Missing tables (start the app once to create them): {', '.join(sorted(missing))}")
            sys.exit(2)
        print("✅ All tables present")
    finally:
        await conn.close()

if __name__ == "__main__":
    asyncio.run(check_db())
