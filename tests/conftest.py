"""Shared fixtures: an in-memory Firestore and fake Airtable tables."""
import copy
import itertools
import uuid
from datetime import datetime, timezone

import pytest
from google.api_core.exceptions import NotFound

from services import firestore_client
from services.firestore_client import SERVER_TIMESTAMP


def _resolve(data):
    """Replace SERVER_TIMESTAMP sentinels the way Firestore does on write."""
    now = datetime.now(timezone.utc)
    return {key: (now if value is SERVER_TIMESTAMP else copy.deepcopy(value)) for key, value in data.items()}


def _matches(data, field_filter):
    field, op, value = field_filter.field_path, field_filter.op_string, field_filter.value
    # Newer clients turn == None and != None into unary operator enums
    op = getattr(op, 'name', op)
    if op == 'IS_NULL':
        op, value = '==', None
    elif op == 'IS_NOT_NULL':
        op, value = '!=', None
    if field not in data:
        return False
    actual = data[field]
    if op == '==':
        return actual == value
    if op == '!=':
        return actual is not None if value is None else actual != value
    if op == 'in':
        return actual in value
    raise NotImplementedError(f"Fake Firestore does not support '{op}'")


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self):
        return self._db.data.setdefault(self._collection, {})

    def get(self):
        return FakeSnapshot(self.id, self._docs.get(self.id))

    def set(self, data):
        self._docs[self.id] = _resolve(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self._collection}/{self.id}")
        self._docs[self.id].update(_resolve(data))

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, db, collection, filters=(), limit=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._limit = limit

    def where(self, filter=None):
        return FakeQuery(self._db, self._collection, self._filters + (filter,), self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, count)

    def stream(self):
        docs = self._db.data.get(self._collection, {})
        matched = [
            FakeSnapshot(doc_id, data)
            for doc_id, data in list(docs.items())
            if all(_matches(data, f) for f in self._filters)
        ]
        if self._limit is not None:
            matched = matched[:self._limit]
        return iter(matched)


class FakeCollectionRef(FakeQuery):
    def __init__(self, db, collection):
        super().__init__(db, collection)

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, self._collection, doc_id or uuid.uuid4().hex[:20])


class FakeWriteBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data):
        self._ops.append(('set', ref, data))

    def update(self, ref, data):
        self._ops.append(('update', ref, data))

    def delete(self, ref):
        self._ops.append(('delete', ref, None))

    def commit(self):
        if self._db.fail_on_commit is not None and len(self._db.commits) + 1 >= self._db.fail_on_commit:
            raise RuntimeError('commit failed')
        for op, ref, data in self._ops:
            if op == 'delete':
                ref.delete()
            else:
                getattr(ref, op)(data)
        self._db.commits.append(len(self._ops))


class FakeFirestore:
    """Enough of google.cloud.firestore.Client for the service layer."""

    def __init__(self):
        self.data = {}
        self.commits = []
        # 1-based index of the commit that should raise
        self.fail_on_commit = None

    def collection(self, name):
        return FakeCollectionRef(self, name)

    def batch(self):
        return FakeWriteBatch(self)

    def add(self, collection, data, doc_id=None):
        """Test helper: seed a document and return its id."""
        ref = self.collection(collection).document(doc_id)
        ref.set(data)
        return ref.id

    def docs(self, collection):
        return self.data.get(collection, {})


def make_airtable_record(record_id, account, **fields):
    base = {'Influencer Account': account} if account is not None else {}
    base.update(fields)
    return {'id': record_id, 'createdTime': '2024-01-01T00:00:00.000Z', 'fields': base}


class FakeAirtableTable:
    """Records calls the service layer makes on a pyairtable Table."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.calls = []
        self._ids = itertools.count(1000)
        self.fail_formula_containing = None

    def _new_id(self):
        return f"rec{next(self._ids)}"

    def all(self, **options):
        self.calls.append(('all', options))
        formula = options.get('formula')
        if formula is not None:
            if self.fail_formula_containing and self.fail_formula_containing in formula:
                raise RuntimeError('Airtable request failed')
            return [
                copy.deepcopy(r) for r in self.records
                if f"='{r['fields'].get('Influencer Account', '')}'" in formula
            ]
        records = [copy.deepcopy(r) for r in self.records]
        max_records = options.get('max_records')
        return records[:max_records] if max_records is not None else records

    def create(self, fields):
        self.calls.append(('create', fields))
        record = {'id': self._new_id(), 'fields': dict(fields)}
        self.records.append(record)
        return copy.deepcopy(record)

    def update(self, record_id, fields):
        self.calls.append(('update', record_id, fields))
        for record in self.records:
            if record['id'] == record_id:
                record['fields'].update(fields)
                return copy.deepcopy(record)
        raise KeyError(record_id)

    def delete(self, record_id):
        self.calls.append(('delete', record_id))
        self.records = [r for r in self.records if r['id'] != record_id]
        return {'id': record_id, 'deleted': True}

    def batch_create(self, fields_list):
        self.calls.append(('batch_create', fields_list))
        return [self.create(f) for f in fields_list]

    def batch_update(self, updates):
        self.calls.append(('batch_update', updates))
        return [self.update(u['id'], u['fields']) for u in updates]


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    monkeypatch.setattr(firestore_client, '_firestore_client', db)
    return db


@pytest.fixture
def airtable_table():
    return FakeAirtableTable([
        make_airtable_record('recA', 'alice', **{
            'Email': 'alice@example.com',
            'Followers': 12000,
            'MAX Views': 90000,
            '5_average': 4000,
            '20_median': 3500,
            '20_average': 3800,
            'Followers 분포': 'US: 83%, DE: 5%',
            'Collab Count': 3,
            'Average Rate': 149.5,
        }),
        make_airtable_record('recB', '@bob', **{'Followers': 500, 'Followers 분포': 'KR: 60%'}),
        make_airtable_record('recC', None, **{'Email': 'noaccount@example.com'}),
    ])


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    import time
    monkeypatch.setattr(time, 'sleep', lambda seconds: None)


@pytest.fixture
def app_module(monkeypatch, fake_db, airtable_table):
    monkeypatch.setenv('AIRTABLE_API_TOKEN', 'patTEST')
    monkeypatch.setenv('AIRTABLE_BASE_ID', 'appDEFAULT12345')
    monkeypatch.delenv('SENTRY_DSN', raising=False)

    import app as module

    requested_bases = []

    def fake_get_table(base_id=None, table_name=None):
        requested_bases.append(base_id)
        return airtable_table

    monkeypatch.setattr(module, 'get_airtable_table', fake_get_table)
    monkeypatch.setattr(module.limiter, 'enabled', False)
    module.app.config['TESTING'] = True
    monkeypatch.setattr(module, 'requested_bases', requested_bases, raising=False)
    return module


@pytest.fixture
def client(app_module):
    return app_module.app.test_client()
