import pytest
from postgrest.exceptions import APIError

from courier_billing.errors import DuplicateKeyError, StorageError
from courier_billing.persistence import MemoryStore, SupabaseStore, create_store


def test_memory_store_enforces_unique_keys() -> None:
    store = MemoryStore()
    store.insert("customer_accounts", {"account_code": "ACME", "name": "Acme"})

    with pytest.raises(DuplicateKeyError):
        store.insert("customer_accounts", {"account_code": "ACME", "name": "Other"})

    store.insert("ledger_entries", {"account_code": "ACME", "sequence": 1, "entry_key": "invoice:INV-1"})
    with pytest.raises(DuplicateKeyError):
        store.insert("ledger_entries", {"account_code": "ACME", "sequence": 1, "entry_key": "receipt:R1"})
    with pytest.raises(DuplicateKeyError):
        store.insert("ledger_entries", {"account_code": "ACME", "sequence": 2, "entry_key": "invoice:INV-1"})


def test_conditional_update_reports_changed_documents() -> None:
    store = MemoryStore()
    store.insert("customer_accounts", {"account_code": "ACME", "version": 0})

    assert len(store.update("customer_accounts", {"account_code": "ACME", "version": 0}, {"version": 1})) == 1
    assert store.update("customer_accounts", {"account_code": "ACME", "version": 0}, {"version": 2}) == []
    assert store.find_one("customer_accounts", {"account_code": "ACME"})["version"] == 1


def test_rejected_update_changes_no_rows() -> None:
    store = MemoryStore()
    store.insert("customer_accounts", {"account_code": "A", "group": "north"})
    store.insert("customer_accounts", {"account_code": "B", "group": "north"})

    with pytest.raises(DuplicateKeyError):
        store.update("customer_accounts", {"group": "north"}, {"account_code": "Z"})

    assert [row["account_code"] for row in store.find("customer_accounts", order_by="account_code")] == ["A", "B"]
    assert len(store.update("customer_accounts", {"account_code": "A"}, {"account_code": "A"})) == 1


def test_find_filters_orders_and_limits() -> None:
    store = MemoryStore()
    for serial in (3, 1, 2):
        store.insert("invoices", {"invoice_number": f"INV-{serial}", "serial": serial, "status": "Built"})

    latest = store.find("invoices", order_by="serial", descending=True, limit=1)
    assert latest[0]["serial"] == 3
    picked = store.find("invoices", {"invoice_number": ["INV-1", "INV-3"]}, order_by="serial")
    assert [row["serial"] for row in picked] == [1, 3]
    assert store.delete("invoices", {"serial": 2}) == 1


def test_documents_are_copied_in_and_out() -> None:
    store = MemoryStore()
    document = {"club_no": "C1", "rows": [{"awb_no": "A1"}]}
    stored = store.insert("clubbing", document)
    document["rows"].append({"awb_no": "A2"})
    stored["rows"].clear()

    assert store.find_one("clubbing", {"club_no": "C1"})["rows"] == [{"awb_no": "A1"}]


class _FailingQuery:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def __getattr__(self, name):
        return lambda *args, **kwargs: self

    def execute(self):
        raise self.error


class _FailingClient:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def table(self, name: str) -> _FailingQuery:
        return _FailingQuery(self.error)


def test_supabase_errors_are_translated() -> None:
    duplicate = SupabaseStore(_FailingClient(APIError({"message": "duplicate key", "code": "23505"})))
    with pytest.raises(DuplicateKeyError):
        duplicate.insert("customer_accounts", {"account_code": "ACME"})

    broken = SupabaseStore(_FailingClient(APIError({"message": "relation does not exist", "code": "42P01"})))
    with pytest.raises(StorageError):
        broken.find("customer_accounts")


def test_create_store_falls_back_to_memory_without_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    from courier_billing.persistence import store as store_module

    monkeypatch.setattr(store_module, "get_supabase_client", lambda: None)

    assert isinstance(create_store("auto"), MemoryStore)
    assert isinstance(create_store("memory"), MemoryStore)
    with pytest.raises(StorageError):
        create_store("supabase")
