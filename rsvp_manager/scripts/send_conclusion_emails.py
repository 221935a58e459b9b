"""
Run the conclusion-email sweep once, outside the API process.

    python -m rsvp_manager.scripts.send_conclusion_emails             # "today" in EVENT_TIMEZONE
    python -m rsvp_manager.scripts.send_conclusion_emails 2025-06-02  # sweep events dated 2025-06-01
"""
from __future__ import annotations

import logging
import sys
from datetime import date
from typing import List, Optional

from rsvp_manager.config import settings
from rsvp_manager.database import init_db, session_scope
from rsvp_manager.services.conclusion_sweep import run_conclusion_sweep


def parse_today(argv: List[str]) -> Optional[date]:
    if not argv:
        return None
    return date.fromisoformat(argv[0].strip())


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=getattr(logging, str(settings.log_level).upper(), logging.INFO))

    today = parse_today(sys.argv[1:] if argv is None else argv)

    # Ensure tables exist (local dev)
    init_db()

    with session_scope() as session:
        result = run_conclusion_sweep(session, today=today)

    print(
        f"Conclusion sweep: events={result.events} sent={result.sent} "
        f"failed={result.failed} skipped={result.skipped}"
    )


if __name__ == "__main__":
    main()
