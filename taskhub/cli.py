"""`taskhub-stats`: list all users with their number of (non-deleted) tasks."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence, TextIO

from sqlalchemy.orm import Session

from .config import settings
from .logging_utils import setup_logging
from .store_db import count_tasks_per_user


HEADERS = ("User Name", "Email", "Tasks Count")


def render_table(rows: Sequence[Sequence[object]], headers: Sequence[str] = HEADERS) -> str:
    cells = [[str(c) for c in headers]] + [[str(c) for c in row] for row in rows]
    widths = [max(len(r[i]) for r in cells) for i in range(len(headers))]
    border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def line(row: list[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(row, widths)) + " |"

    out = [border, line(cells[0]), border]
    out += [line(r) for r in cells[1:]]
    out.append(border)
    return "\n".join(out)


def task_stats(db: Session, out: TextIO = sys.stdout) -> int:
    """Write the per-user task report to `out`; return the number of users."""
    stats = count_tasks_per_user(db)
    if not stats:
        out.write("No users found in the system.\n")
        return 0
    out.write("\n--- User Task Statistics Report ---\n")
    out.write(render_table([(u.name, u.email, n) for u, n in stats]) + "\n")
    out.write("Done!\n\n")
    return len(stats)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="taskhub-stats", description=__doc__)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    from .db import SessionLocal

    db = SessionLocal()
    try:
        task_stats(db)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
