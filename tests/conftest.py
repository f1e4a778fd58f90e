import pytest
from datetime import datetime, timezone

from pack_archive import create_app
from pack_archive.database import Base, create_all, get_session
from pack_archive.services.archival_service import ArchivalPipeline
from pack_archive.store.base import Collection
from pack_archive.store.memory import MemoryDocumentStore

# Reference "now" for every test: yesterday is 2024-01-03
NOW = datetime(2024, 1, 4, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


def no_pause():
    pass


class PackagingFactory:
    """Creates packaging documents through any DocumentStore."""

    def __init__(self, store):
        self.store = store
        self._sequence = 0

    def _next(self):
        self._sequence += 1
        return self._sequence

    def product(self, barcode, name, type='single'):
        return self.store.create(Collection.PRODUCTS, {'barcode': barcode, 'name': name, 'type': type})

    def component(self, parent, child, quantity=1):
        child_id = child if isinstance(child, str) else child['id']
        return self.store.create(Collection.PRODUCT_COMPONENTS, {
            'parent_product_id': parent['id'],
            'child_product_id': child_id,
            'quantity': quantity,
        })

    def record(self, packaging_date, waybill_number=None):
        n = self._next()
        return self.store.create(Collection.PACKAGING_RECORDS, {
            'packaging_date': packaging_date,
            'waybill_number': waybill_number or f'WB-{n:04d}',
        })

    def item(self, record, barcode, scanned_at):
        return self.store.create(Collection.PACKAGING_ITEMS, {
            'packaging_record_id': record['id'],
            'product_barcode': barcode,
            'scanned_at': scanned_at,
        })


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def store():
    """In-memory document store."""
    return MemoryDocumentStore(clock=fixed_clock)


@pytest.fixture
def factory(store):
    return PackagingFactory(store)


@pytest.fixture
def pipeline(store):
    """Pipeline over the in-memory store with no pauses."""
    return ArchivalPipeline(store, pause=no_pause, clock=fixed_clock)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (SQLite in memory)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def sql_store(app):
    """SQL document store; every table is emptied after the test."""
    with app.app_context():
        yield app.extensions['document_store']
        session = get_session()
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture
def sql_factory(sql_store):
    return PackagingFactory(sql_store)
