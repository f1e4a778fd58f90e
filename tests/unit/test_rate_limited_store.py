"""
Unit tests for the rate limited store wrapper.
"""

import pytest
from pack_archive.exceptions import StoreUnavailableError
from pack_archive.store.base import Collection
from pack_archive.store.rate_limited import RateLimitedStore


class _EmptyBucket:
    def try_acquire(self, name, weight=1):
        return False


def test_delegates_to_inner_store(store, factory):
    product = factory.product('1', 'Soap')
    limited = RateLimitedStore(store, requests_per_second=1000)

    assert limited.get(Collection.PRODUCTS, product['id'])['name'] == 'Soap'
    assert len(limited.list(Collection.PRODUCTS, filters={'barcode': '1'})) == 1
    created = limited.create(Collection.PRODUCTS, {'barcode': '2', 'name': 'Rice', 'type': 'single'})
    limited.update(Collection.PRODUCTS, created['id'], {'name': 'Jasmine Rice'})
    limited.delete(Collection.PRODUCTS, product['id'])

    assert [p['name'] for p in store.list(Collection.PRODUCTS)] == ['Jasmine Rice']


def test_exhausted_bucket_is_a_transient_store_error(store):
    limited = RateLimitedStore(store, requests_per_second=5)
    limited._limiter = _EmptyBucket()

    with pytest.raises(StoreUnavailableError):
        limited.list(Collection.PRODUCTS)
    assert store.calls == []


def test_rate_must_be_positive(store):
    with pytest.raises(ValueError):
        RateLimitedStore(store, requests_per_second=0)
