from __future__ import annotations

import argparse

from sqlmodel import Session

from recipegen.core.database import engine, init_db
from recipegen.services.seed import load_sample_recipes


def main() -> None:
    parser = argparse.ArgumentParser(description="Insert the sample recipes into the configured database.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="insert missing samples even when the recipes table already has rows",
    )
    args = parser.parse_args()

    init_db()
    with Session(engine) as session:
        inserted, skipped = load_sample_recipes(session, only_if_empty=not args.force)
    print(f"Inserted {inserted} recipes, skipped {skipped}.")


if __name__ == "__main__":
    main()
