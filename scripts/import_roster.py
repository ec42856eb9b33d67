#!/usr/bin/env python3
"""
Import a lead roster into the configured store.

Reads a local CSV export or a Google Sheet link (edit/pub links are
converted to CSV export links), maps the columns through the importer's
alias table and upserts the rows. Existing score records are untouched.

Usage:
    python scripts/import_roster.py leads.csv
    python scripts/import_roster.py "https://docs.google.com/spreadsheets/d/<id>/edit"
    python scripts/import_roster.py leads.csv --dry-run   # parse only

Requires: STORE_BACKEND and its settings (defaults to sqlite:///local.db).
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from portal.logging_config import configure_logging
from portal.services.bootstrap import build_store
from portal.services.importer import fetch_csv_rows, parse_csv, prepare_import
from portal.services.repository import LeadRepository


def load_rows(source):
    if source.startswith(('http://', 'https://')):
        return fetch_csv_rows(source)
    with open(source, 'r', encoding='utf-8-sig', newline='') as f:
        return parse_csv(f.read())


def main():
    parser = argparse.ArgumentParser(description='Import a lead roster CSV or Google Sheet')
    parser.add_argument('source', help='CSV file path or sheet URL')
    parser.add_argument('--dry-run', action='store_true', help='Parse and report without writing')
    args = parser.parse_args()

    configure_logging()

    rows = load_rows(args.source)
    print(f'Read {len(rows)} rows from {args.source}')

    if args.dry_run:
        batch = prepare_import(rows)
        print(f'  {len(batch.leads)} leads, {batch.skipped} skipped, {batch.duplicates} duplicates')
        return

    repo = LeadRepository(build_store())
    result = repo.import_roster(rows)
    print(f'  Imported {result.imported} leads '
          f'({result.skipped} without identifier, {result.duplicates} duplicates collapsed)')


if __name__ == '__main__':
    main()
