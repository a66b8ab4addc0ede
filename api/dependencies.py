"""
Request dependencies: the ledger store and the payment processor.

Backend selection (environment, loaded from the project .env):
- LEDGER_STORE=memory   (default) process-local InMemoryLedgerStore
- LEDGER_STORE=supabase SupabaseLedgerStore (needs SUPABASE_URL / SUPABASE_KEY)

Both dependencies are process-wide singletons. Tests replace them through
`app.dependency_overrides`.
"""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from repositories.memory_store import InMemoryLedgerStore
from repositories.store import LedgerStore
from services.payment_processor import MockPaymentProcessor, PaymentProcessor

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


@lru_cache(maxsize=1)
def get_store() -> LedgerStore:
    backend = os.getenv("LEDGER_STORE", "memory").strip().lower()

    if backend == "memory":
        return InMemoryLedgerStore()

    if backend == "supabase":
        from repositories.supabase_store import SupabaseLedgerStore

        return SupabaseLedgerStore()

    raise RuntimeError(
        f"Invalid LEDGER_STORE value: {backend!r}. "
        "Set LEDGER_STORE to 'memory' or 'supabase'."
    )


@lru_cache(maxsize=1)
def get_processor() -> PaymentProcessor:
    return MockPaymentProcessor()


__all__ = ["get_store", "get_processor"]
