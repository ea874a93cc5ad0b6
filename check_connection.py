"""
Supabase connection check
Run this to verify the credentials in .env and that the invoices table exists
"""

import re
import sys

from dotenv import load_dotenv
from postgrest.exceptions import APIError
from supabase import create_client, Client

load_dotenv()

from api_server.config import get_settings

MISSING_TABLE_CODES = {"42P01", "PGRST205"}


def mask_key(key: str) -> str:
    """Keep only the first and last four characters of a secret"""
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}***{key[-4:]}"


def mask_url(url: str) -> str:
    return re.sub(r"//([^:/]+):([^@]+)@", "//***:***@", url)


def main() -> int:
    settings = get_settings()

    print("🔍 Testing Supabase connection...")
    print("URL:", mask_url(settings.SUPABASE_URL) or "(not set)")
    print("Key:", mask_key(settings.SUPABASE_SERVICE_ROLE_KEY) if settings.SUPABASE_SERVICE_ROLE_KEY else "(not set)")
    print("Table:", settings.INVOICES_TABLE)

    try:
        supabase: Client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        result = supabase.table(settings.INVOICES_TABLE).select("id", count="exact").limit(1).execute()
    except APIError as e:
        print("❌ Query failed:")
        print("Error code:", e.code)
        print("Error message:", e.message)
        if e.code in MISSING_TABLE_CODES:
            print("\n💡 Solution: Create the invoices table")
            print("   Run sql/schema.sql in the Supabase SQL editor")
        return 1
    except Exception as e:
        print("❌ Connection failed:")
        print("Error type:", type(e).__name__)
        print("Error message:", e)
        message = str(e).lower()
        if "invalid api key" in message or "jwt" in message:
            print("\n💡 Solution: Check SUPABASE_SERVICE_ROLE_KEY in .env")
        elif "url" in message or "connect" in message:
            print("\n💡 Solution: Check SUPABASE_URL in .env and that the project is running")
        return 1

    print("✅ Supabase connected successfully!")
    print("📊 Invoices stored:", result.count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
