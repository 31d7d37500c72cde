"""Recompute the derived fields (total, percentage, letter, grade point) of every grade row.

Run after changing the grading rules:

    python scripts/recompute_grades.py            # apply
    python scripts/recompute_grades.py --dry-run  # count only, roll back
"""
import argparse
import logging

from gradebook.core.database import SessionLocal
from gradebook.services.grade import GradeService

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def main(dry_run: bool = False) -> int:
    session = SessionLocal()
    try:
        count = GradeService(session).recompute_all()
        if dry_run:
            session.rollback()
            print(f"Dry run: {count} grade records would be recomputed")
        else:
            session.commit()
            print(f"Recomputed {count} grade records")
        return count
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="Roll back instead of committing")
    args = parser.parse_args()
    main(dry_run=args.dry_run)
