# scripts/verify_audit_integrity.py

import sys
from pathlib import Path

# Ensure project root is on the path when running this script directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio
from datetime import datetime, timezone

from tenantguard.config.settings import get_settings
from tenantguard.governance.integrity import find_tampered
from tenantguard.infrastructure.database.audit_repository_db import DbAuditLogReader
from tenantguard.infrastructure.database.session import build_engine, build_sessionmaker

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


async def verify() -> int:
    """Recompute every stored checksum. Exit status 1 if any entry fails."""
    engine = build_engine(get_settings().database_url)
    reader = DbAuditLogReader(build_sessionmaker(engine))
    try:
        entries = await reader.list_since(EPOCH)
    finally:
        await engine.dispose()

    tampered = find_tampered(entries)
    print(f"Checked {len(entries)} audit entries")
    for entry_id in tampered:
        print("INTEGRITY FAILURE:", entry_id)
    if tampered:
        return 1
    print("Audit log intact")
    return 0

sys.exit(asyncio.run(verify()))
