"""
Bundle composition lookup.

A bundle's recipe is one level deep: each ProductComponent points at a
child product, fetched by id for its current barcode and name. A child
that is itself a bundle is listed as a plain product, not expanded.
"""
import logging
from typing import Dict, List, Optional

from pack_archive.exceptions import StoreError
from pack_archive.models.product import ProductType
from pack_archive.services.collection_reader import Pause
from pack_archive.store.base import ASC, Collection, Document, DocumentStore

logger = logging.getLogger(__name__)

# Recipes are small; one list call covers them
COMPONENT_QUERY_LIMIT = 100


def bundle_products(product_map: Dict[str, Document]) -> List[Document]:
    return [p for p in product_map.values() if p.get('type') == ProductType.BUNDLE.value]


def fetch_bundle_components(
    store: DocumentStore,
    bundle: Document,
    pause: Optional[Pause] = None,
) -> List[dict]:
    """Flattened ``{barcode, product_name, quantity}`` list for one bundle."""
    links = store.list(
        Collection.PRODUCT_COMPONENTS,
        filters={'parent_product_id': bundle['id']},
        sort=[('created_at', ASC)],
        limit=COMPONENT_QUERY_LIMIT,
    )

    components = []
    for link in links:
        child = store.get(Collection.PRODUCTS, link['child_product_id'])
        components.append({
            'barcode': child['barcode'],
            'product_name': child['name'],
            'quantity': link['quantity'],
        })
        if pause:
            pause()
    return components


def resolve_bundle_components(
    store: DocumentStore,
    product_map: Dict[str, Document],
    pause: Optional[Pause] = None,
) -> Dict[str, List[dict]]:
    """
    Map bundle barcode -> its components.

    A bundle whose recipe cannot be resolved (e.g. a child product deleted
    since) is left out of the map and the run carries on. Bundles with no
    components are left out as well.
    """
    bundles = bundle_products(product_map)
    components_map: Dict[str, List[dict]] = {}

    for bundle in bundles:
        try:
            components = fetch_bundle_components(store, bundle, pause=pause)
        except StoreError as e:
            logger.warning(f"[BUNDLE] Skipping bundle {bundle['barcode']}: {e.message}")
            continue

        if components:
            components_map[bundle['barcode']] = components

    logger.debug(f"[BUNDLE] Resolved {len(components_map)}/{len(bundles)} bundle(s)")
    return components_map
