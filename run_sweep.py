"""
Conclusion-email sweep entrypoint (for an external cron instead of the in-process scheduler).

Operator notes:
- Set SCHEDULER_ENABLED=false on the API when this is scheduled externally,
  otherwise both will run (the per-event sent marker still prevents double mail).
- Optional argument: the "today" date, ISO format.
"""

import logging
import sys

from rsvp_manager.scripts.send_conclusion_emails import main as sweep


def main() -> None:
    try:
        sweep()
    except Exception:
        logging.basicConfig(level=logging.ERROR)
        logging.exception("Conclusion sweep failed.")
        print("\nConclusion sweep failed.")
        print("   See error above. Most common causes:")
        print("   - Database path/URL invalid (DATABASE_URL or DB_PATH)")
        print("   - EMAIL_HOST / EMAIL_PORT unreachable")
        print("   - Date argument not in YYYY-MM-DD form\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
