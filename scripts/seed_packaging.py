"""
Seed demo packaging data for local development.

Creates a handful of single and bundle products plus packaging records
with scanned items for each day from --start to yesterday.

Usage:
    python scripts/seed_packaging.py --start 2024-01-01 --records 5
"""
import argparse
import random
import sys
import os
from datetime import datetime, time, timedelta, timezone

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from pack_archive import create_app
from pack_archive.database import create_all
from pack_archive.store import Collection, get_store
from pack_archive.utils.dates import date_range, format_date, parse_iso_date, previous_day

SINGLES = [
    ('8850001000011', 'Jasmine Rice 5kg'),
    ('8850001000028', 'Fish Sauce 700ml'),
    ('8850001000035', 'Coconut Milk 400ml'),
    ('8850001000042', 'Green Curry Paste 50g'),
    ('8850001000059', 'Palm Sugar 500g'),
]
BUNDLES = [
    ('8859999000017', 'Curry Starter Set', [('8850001000035', 2), ('8850001000042', 1), ('8850001000028', 1)]),
    ('8859999000024', 'Pantry Box', [('8850001000011', 1), ('8850001000059', 2)]),
]
PREFIXES = ['WB', 'SHP', 'PKG', 'DLV', 'ORD']


def seed_products(store):
    by_barcode = {}
    for barcode, name in SINGLES:
        by_barcode[barcode] = store.create(Collection.PRODUCTS, {'barcode': barcode, 'name': name, 'type': 'single'})
    for barcode, name, recipe in BUNDLES:
        bundle = store.create(Collection.PRODUCTS, {'barcode': barcode, 'name': name, 'type': 'bundle'})
        by_barcode[barcode] = bundle
        for child_barcode, quantity in recipe:
            store.create(Collection.PRODUCT_COMPONENTS, {
                'parent_product_id': bundle['id'],
                'child_product_id': by_barcode[child_barcode]['id'],
                'quantity': quantity,
            })
    return list(by_barcode)


def seed_day(store, day, barcodes, records_per_day, rng):
    date_string = format_date(day)
    for index in range(1, records_per_day + 1):
        record = store.create(Collection.PACKAGING_RECORDS, {
            'packaging_date': date_string,
            'waybill_number': f"{rng.choice(PREFIXES)}-{date_string.replace('-', '')}-{index:04d}",
        })
        start = datetime.combine(day, time(8, 0), tzinfo=timezone.utc)
        for offset in range(rng.randint(1, 4)):
            store.create(Collection.PACKAGING_ITEMS, {
                'packaging_record_id': record['id'],
                # Occasionally scan a barcode that matches no product
                'product_barcode': rng.choice(barcodes) if rng.random() > 0.05 else '0000000000000',
                'scanned_at': (start + timedelta(minutes=index * 10 + offset)).isoformat(),
            })


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('--start', required=True, help='First date to seed (YYYY-MM-DD)')
    parser.add_argument('--records', type=int, default=5, help='Packaging records per day')
    parser.add_argument('--seed', type=int, default=42)
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if app.config['DOCUMENT_STORE'] == 'sql':
            create_all()
        store = get_store()
        rng = random.Random(args.seed)

        barcodes = seed_products(store)
        yesterday = previous_day(datetime.now(timezone.utc).date())
        days = date_range(parse_iso_date(args.start, 'start'), yesterday)
        for day in days:
            seed_day(store, day, barcodes, args.records, rng)
        print(f"Seeded {len(barcodes)} products and {len(days) * args.records} records over {len(days)} day(s)")


if __name__ == "__main__":
    main()
