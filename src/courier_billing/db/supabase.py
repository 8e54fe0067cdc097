"""Supabase client for the billing backend."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


# Collections used by the billing service (one table per document type):
#
#   customer_accounts   account_code (unique), name, state, balance, version
#   zones               sector, zone, service, destination, rate, billed, ...
#   fuel_settings       customer, service, amount, mode, effective_date, created_at
#   tax_settings        customer, service, name, amount, mode, effective_date, created_at
#   shipments           awb_no (unique), account_code, sector, zone, weights, ...
#   manifests           manifest_no (unique), account_code, awb_numbers, status
#   clubbing            club_no (unique), run_no, rows (jsonb), bag_weight, is_locked
#   runs                run_no (unique), sector, origin, destination, date
#   invoices            invoice_number (unique), serial (unique), status, lines (jsonb)
#   ledger_entries      (account_code, sequence) unique, entry_key (unique)
#   receipts            receipt_no (unique), account_code, amount
#   notifications       account_code, title, message, kind
