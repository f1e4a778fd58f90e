"""
Assembly of enriched packaging records.

Pure functions: no store access, so the join logic is testable with plain
dicts.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from pack_archive.models.product import ProductType
from pack_archive.utils.dates import parse_timestamp

UNKNOWN_PRODUCT = 'Unknown Product'

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _scanned_key(item: dict) -> datetime:
    return parse_timestamp(item.get('scanned_at')) or _OLDEST


def enrich_item(item: dict, product_map: Dict[str, dict], bundle_map: Dict[str, List[dict]]) -> dict:
    """Item plus product_name, is_bundle and (when known) bundle_components."""
    barcode = item.get('product_barcode')
    product = product_map.get(barcode)

    enriched = dict(item)
    enriched['product_name'] = product['name'] if product else UNKNOWN_PRODUCT
    enriched['is_bundle'] = bool(product) and product.get('type') == ProductType.BUNDLE.value

    components = bundle_map.get(barcode) if enriched['is_bundle'] else None
    if components:
        enriched['bundle_components'] = [dict(c) for c in components]
    return enriched


def group_items_by_record(items: Sequence[dict]) -> Dict[str, List[dict]]:
    grouped = defaultdict(list)
    for item in items:
        grouped[item.get('packaging_record_id')].append(item)
    return grouped


def assemble_records(
    records: Sequence[dict],
    items: Sequence[dict],
    product_map: Dict[str, dict],
    bundle_map: Dict[str, List[dict]],
) -> List[dict]:
    """
    One enriched record per packaging record, in the order given.

    Each record's items are enriched and ordered by scanned_at, newest
    first. Items pointing at records not in ``records`` are dropped.
    """
    grouped = group_items_by_record(items)

    enriched_records = []
    for record in records:
        record_items = sorted(grouped.get(record['id'], ()), key=_scanned_key, reverse=True)
        enriched = dict(record)
        enriched['items'] = [enrich_item(item, product_map, bundle_map) for item in record_items]
        enriched_records.append(enriched)
    return enriched_records


def count_items(records: Sequence[dict]) -> int:
    return sum(len(record.get('items', ())) for record in records)
