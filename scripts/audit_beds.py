#!/usr/bin/env python3
"""
Check that every camp's bed count matches its active selections.

For each camp, current beds must equal original beds minus the number of
selections pointing at it, and every selection must point at an existing
camp. Exits 1 when anything disagrees.

Usage:
    python scripts/audit_beds.py
    python scripts/audit_beds.py --json
    STORE_BACKEND=pocketbase python scripts/audit_beds.py
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from api.dependencies import authenticate_pb, build_store  # noqa: E402
from api.settings import get_settings  # noqa: E402
from relief.allocation import AllocationEngine  # noqa: E402
from relief.logging_config import configure_logging  # noqa: E402
from relief.models import BedDiscrepancy, DiscrepancyKind  # noqa: E402


def describe(d: BedDiscrepancy) -> str:
    if d.kind is DiscrepancyKind.MISSING_CAMP:
        return f"camp no longer exists ({d.active_selections} active selections)"
    if d.kind is DiscrepancyKind.INVALID_RECORD:
        return f"bed counts are not integers ({d.active_selections} active selections)"
    return (
        f"{d.kind.value}: {d.current_bed_count} beds free, "
        f"expected {d.expected_bed_count} ({d.active_selections} active selections)"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Audit camp bed counts against active selections")
    parser.add_argument("--json", action="store_true", help="Print discrepancies as JSON")
    parser.add_argument("--data-dir", type=Path, help="Override DATA_DIR for the JSON store")
    args = parser.parse_args(argv)

    configure_logging(source="audit")

    settings = get_settings()
    if args.data_dir is not None:
        settings = settings.model_copy(update={"data_dir": args.data_dir})

    store = build_store(settings)
    asyncio.run(authenticate_pb(store, settings))
    discrepancies = AllocationEngine(store).audit()

    if args.json:
        print(json.dumps([d.model_dump(mode="json") for d in discrepancies], indent=2))
    elif not discrepancies:
        print("All camp bed counts match their active selections.")
    else:
        print(f"{len(discrepancies)} camp(s) out of balance:")
        for d in discrepancies:
            print(f"  {d.camp_name} ({d.camp_id}): {describe(d)}")

    return 1 if discrepancies else 0


if __name__ == "__main__":
    sys.exit(main())
