#!/usr/bin/env python3
"""Check the billing service configuration and create a template .env when missing."""

import sys
from pathlib import Path

TEMPLATE = """# Storage: auto uses Supabase when both values below are set, otherwise memory
CB_STORAGE_BACKEND=auto
CB_SUPABASE_URL=https://your-project-id.supabase.co
CB_SUPABASE_KEY=your-service-role-key-here

# API
CB_API_PREFIX=/api
# JSON array or comma-separated: http://localhost:3000,http://127.0.0.1:3000
# CB_FRONTEND_ALLOWED_ORIGINS=

# Billing
CB_HOME_STATE=Delhi
CB_GLOBAL_CUSTOMER_CODE=ALL
CB_MISSING_SURCHARGE_POLICY=reject
CB_INVOICE_PREFIX=INV
CB_RECEIPT_PREFIX=RCPT
"""


def _mask(value: str) -> str:
    return value if len(value) <= 20 else f"{value[:20]}...{value[-10:]}"


def main() -> int:
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Courier billing configuration check")
    print("=" * 60)

    if not env_file.exists():
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"Created template .env at {env_file}; edit it and run this again.")
        return 1

    print(f"Found .env at {env_file}")
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() == "CB_SUPABASE_KEY":
            line = f"{name}={_mask(value.strip())}"
        print(f"  {line}")
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from courier_billing.config import settings
    except Exception as exc:  # noqa: BLE001
        print(f"Error loading config: {exc}")
        return 1

    print(f"storage_backend          = {settings.storage_backend}")
    print(f"supabase_url             = {settings.supabase_url or '(not set)'}")
    print(f"supabase_key             = {_mask(settings.supabase_key) if settings.supabase_key else '(not set)'}")
    print(f"home_state               = {settings.home_state}")
    print(f"missing_surcharge_policy = {settings.missing_surcharge_policy}")
    print()

    configured = bool(settings.supabase_url and settings.supabase_key)
    if settings.storage_backend == "supabase" and not configured:
        print("ERROR: storage_backend is 'supabase' but CB_SUPABASE_URL/CB_SUPABASE_KEY are missing")
        return 1
    if configured:
        print("Supabase is configured; records will be stored in Supabase.")
    else:
        print("Supabase is not configured; the service will use the in-memory store.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
