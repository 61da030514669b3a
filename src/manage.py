"""Storefront database management CLI.

Creates and drops the aggregate tables of the SQL-backed providers, plus
the stock ledger and order sequence tables when those run on SQL.

Usage:
    PROTEAN_ENV=sqlite python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=sqlite python src/manage.py drop-db    # Drop all tables
"""

import argparse
import os
import sys


def setup_databases():
    from storefront.domain import storefront
    from storefront.inventory import get_stock_ledger
    from storefront.order.numbering import get_sequence_allocator
    from storefront.utils.db import setup_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Creating storefront database schema...")
    setup_db(storefront)

    # The SQL adapters create their own tables when constructed
    if os.environ.get("STOCK_LEDGER") == "sql":
        get_stock_ledger()
        print("  stock ledger ready.")
    if os.environ.get("ORDER_SEQUENCE") == "sql":
        get_sequence_allocator()
        print("  order sequences ready.")

    print("Done.")


def drop_databases():
    from storefront.domain import storefront
    from storefront.utils.db import build_engine, drop_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Dropping storefront database schema...")
    drop_db(storefront)

    if os.environ.get("STOCK_LEDGER") == "sql":
        from storefront.inventory.sql_adapter import metadata as stock_metadata

        stock_metadata.drop_all(build_engine(os.environ.get("STOCK_LEDGER_URL", "sqlite:///storefront_stock.db")))
        print("  stock ledger dropped.")
    if os.environ.get("ORDER_SEQUENCE") == "sql":
        from storefront.order.numbering.sql_adapter import metadata as sequence_metadata

        sequence_metadata.drop_all(
            build_engine(os.environ.get("ORDER_SEQUENCE_URL", "sqlite:///storefront_sequences.db"))
        )
        print("  order sequences dropped.")

    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
