"""
Schema sync for the identity tables.

- Creates missing tables (verification_sessions, identities, invitations, companies,
  inboxes, inbox_assignments, onboarding_progress, audit_logs)
- Adds columns present in smshub.models but missing from an existing database
- Adds named UNIQUE constraints (e.g. uq_identities_email) missing from an existing table;
  fails if the table already holds duplicates, which must be merged by hand first

New databases do not need this; app startup runs create_all(). Run it against a database
created before a column was added:
  python scripts/migrate_all_tables.py            # apply
  python scripts/migrate_all_tables.py --dry-run  # print the ALTER statements only
"""
import argparse
import os
import sys

# Project root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import Column, UniqueConstraint, inspect, text  # noqa: E402
from sqlalchemy.schema import DefaultClause  # noqa: E402
from smshub.database import Base, engine  # noqa: E402
from smshub import models  # noqa: F401,E402


def _column_ddl(table_name: str, col: Column) -> tuple[str, str | None]:
    """ALTER statement for one missing column, plus a warning when NOT NULL cannot be kept."""
    col_type = col.type.compile(dialect=engine.dialect)
    default_sql = None
    if isinstance(col.server_default, DefaultClause) and col.server_default.arg is not None:
        default_sql = str(col.server_default.arg.compile(dialect=engine.dialect))

    stmt = f'ALTER TABLE {table_name} ADD COLUMN "{col.name}" {col_type}'
    if default_sql:
        stmt += f" DEFAULT {default_sql}"
    warning = None
    if not col.nullable:
        if default_sql:
            stmt += " NOT NULL"
        else:
            # Existing rows would violate NOT NULL
            warning = f"{table_name}.{col.name} is NOT NULL in the model but was added as NULL (no server default)."
    return stmt, warning


def missing_columns() -> list[tuple[str, Column]]:
    insp = inspect(engine)
    existing_tables = set(insp.get_table_names())
    missing = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue
        existing_cols = {c["name"] for c in insp.get_columns(table.name)}
        missing.extend((table.name, col) for col in table.columns if col.name not in existing_cols)
    return missing


def missing_unique_constraints() -> list[str]:
    """ALTER statements for named unique constraints the database does not have yet."""
    insp = inspect(engine)
    existing_tables = set(insp.get_table_names())
    statements = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue
        existing = {uc["name"] for uc in insp.get_unique_constraints(table.name)}
        for constraint in table.constraints:
            if not isinstance(constraint, UniqueConstraint) or not constraint.name or constraint.name in existing:
                continue
            cols = ", ".join(f'"{c.name}"' for c in constraint.columns)
            statements.append(f"ALTER TABLE {table.name} ADD CONSTRAINT {constraint.name} UNIQUE ({cols})")
    return statements


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--dry-run", action="store_true", help="print statements without executing them")
    args = parser.parse_args(argv)

    if not args.dry_run:
        Base.metadata.create_all(bind=engine)

    statements = [_column_ddl(name, col) for name, col in missing_columns()]
    statements.extend((stmt, None) for stmt in missing_unique_constraints())
    if not statements:
        print("Schema is up to date.")
        return 0

    warnings = [w for _, w in statements if w]
    if args.dry_run:
        for stmt, _ in statements:
            print(f"{stmt};")
    else:
        with engine.begin() as conn:
            for stmt, _ in statements:
                conn.execute(text(stmt))
                print(f"  applied: {stmt}")
        print(f"Done. Applied {len(statements)} statement(s).")
    for w in warnings:
        print(f"WARNING: {w}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
