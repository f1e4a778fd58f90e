"""JSON access to packaging snapshots, cache-aside for past dates."""
from flask import Blueprint, current_app, jsonify

from pack_archive.services.archival_service import ArchivalPipeline, read_date
from pack_archive.services.packaging_cache_service import PackagingCacheService
from pack_archive.store import get_store
from pack_archive.utils.dates import format_date, parse_iso_date

packaging_cache_bp = Blueprint('packaging_cache', __name__, url_prefix='/api/packaging/cache')


def _cache_service():
    return PackagingCacheService(get_store(), cache=current_app.extensions.get('cache'))


@packaging_cache_bp.route('/', strict_slashes=False)
def list_cached_dates():
    """Dates that have an archived snapshot, ascending."""
    dates = _cache_service().list_cached_dates()
    return jsonify({'status': 'ok', 'dates': dates})


@packaging_cache_bp.route('/<cache_date>')
def get_cached_date(cache_date):
    """
    Enriched records for one date.

    Today is read live. A past date that was never archived is built from
    the packaging records and cached on the way out; a date without
    records returns an empty list.
    """
    day = parse_iso_date(cache_date)
    pipeline = ArchivalPipeline.from_config(
        current_app.config, get_store(), cache=current_app.extensions.get('cache')
    )
    records, source = read_date(pipeline, day)
    return jsonify({'status': 'ok', 'date': format_date(day), 'source': source, 'records': records})
