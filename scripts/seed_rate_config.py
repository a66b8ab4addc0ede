"""
Seed the platform rate config.

Creates the default rates if the rate_config table is empty:
- narrated: 0.28 per minute, split 0.50 user / 0.50 platform
- silent:   0.12 per minute, split 0.30 user / 0.70 platform

An existing record is left untouched and printed.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.supabase_store import SupabaseLedgerStore
from services.rate_config_service import get_rates


def seed_rate_config():
    """Create the default rate config when none exists."""

    store = SupabaseLedgerStore()
    existed = store.get_rate_config() is not None
    config = get_rates(store)

    if existed:
        print(f"Rate config already exists (version {config.version})")
    else:
        print(f"Created default rate config (version {config.version})")

    print(f"  narrated: {config.narrated_rate}/min  user {config.narrated_user_split}  platform {config.narrated_platform_split}")
    print(f"  silent:   {config.silent_rate}/min  user {config.silent_user_split}  platform {config.silent_platform_split}")


if __name__ == "__main__":
    seed_rate_config()
