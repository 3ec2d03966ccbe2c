import asyncio
import os

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from src.core.database import resolve_async_database_url

# 1. Load .env
load_dotenv()

DB_LABELS = {
    "postgresql": "PostgreSQL",
    "sqlite": "SQLite (tests)",
}

HEALTH_QUERIES = {
    "postgresql": "SELECT version();",
}

REQUIRED_KEYS = ("JWT_SECRET", "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")


async def verify_database():
    print("-" * 30)
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        print("❌ Error: DATABASE_URL is not set")
        return False

    try:
        async_url = resolve_async_database_url(db_url)
        url = make_url(async_url)
    except Exception as exc:  # noqa: BLE001 - surface clear setup errors
        print(f"❌ Unsupported database configuration: {exc}")
        return False

    backend = url.get_backend_name()
    label = DB_LABELS.get(backend, backend)
    print(f"🔍 Checking {label} connection...")
    print(f"ℹ️  DSN: {url.render_as_string(hide_password=True)}")

    query = HEALTH_QUERIES.get(backend, "SELECT 1")

    try:
        engine = create_async_engine(async_url, echo=False)
        async with engine.connect() as conn:
            result = await conn.execute(text(query))
            version = result.scalar()
            print(f"✅ {label} connection OK: {version}")
        await engine.dispose()
        return True
    except Exception as e:  # noqa: BLE001 - surface connection failure
        print(f"❌ {label} connection failed: {e}")
        return False


def verify_keys():
    print("-" * 30)
    print("🔍 Checking auth and Stripe keys...")
    ok = True
    for key in REQUIRED_KEYS:
        if os.getenv(key):
            print(f"✅ {key} is set")
        else:
            print(f"❌ {key} is missing")
            ok = False

    stripe_key = os.getenv("STRIPE_SECRET_KEY", "")
    if stripe_key.startswith("sk_live_"):
        print("⚠️  STRIPE_SECRET_KEY is a live key")
    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    if webhook_secret and not webhook_secret.startswith("whsec_"):
        print("⚠️  STRIPE_WEBHOOK_SECRET does not look like a webhook signing secret")
    return ok


async def main():
    print("🚀 Verifying environment configuration...")

    db_ok = await verify_database()
    keys_ok = verify_keys()

    print("-" * 30)
    if db_ok and keys_ok:
        print("🎉 All core services are configured correctly.")
    else:
        print("⚠️  Warning: configuration problems found, check your .env file.")

if __name__ == "__main__":
    asyncio.run(main())
