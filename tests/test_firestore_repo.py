"""Tests for the Firestore entity layer and workflow helpers"""
import pytest

from services import firestore_repo as repo


def test_project_crud(fake_db):
    project_id = repo.create_project(fake_db, {'name': 'Launch', 'budget': 1000, 'spent': 0})

    project = repo.get_project(fake_db, project_id)
    assert project['id'] == project_id
    assert project['name'] == 'Launch'
    assert isinstance(project['createdAt'], str)

    repo.update_project(fake_db, project_id, {'budget': 2000})
    assert repo.get_project(fake_db, project_id)['budget'] == 2000
    assert [p['id'] for p in repo.list_projects(fake_db)] == [project_id]

    repo.delete_project(fake_db, project_id)
    assert repo.get_project(fake_db, project_id) is None


def test_create_ignores_client_supplied_id(fake_db):
    project_id = repo.create_project(fake_db, {'id': 'spoofed', 'name': 'X'})

    assert project_id != 'spoofed'
    assert 'id' not in fake_db.docs('projects')[project_id]


def test_influencers_by_project(fake_db):
    a = repo.create_influencer(fake_db, {'handle': '@a', 'projectId': 'p1'})
    repo.create_influencer(fake_db, {'handle': '@b', 'projectId': 'p2'})

    assert [i['id'] for i in repo.get_influencers_by_project(fake_db, 'p1')] == [a]


def test_update_influencer_status_validates(fake_db):
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a', 'status': 'Discovery'})

    repo.update_influencer_status(fake_db, influencer_id, 'Negotiating')
    assert repo.get_influencer(fake_db, influencer_id)['status'] == 'Negotiating'

    with pytest.raises(ValueError):
        repo.update_influencer_status(fake_db, influencer_id, 'Ghosted')


def test_delete_influencer(fake_db):
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a'})

    repo.delete_influencer(fake_db, influencer_id)

    assert repo.get_influencer(fake_db, influencer_id) is None


def test_brand_user_category_collections(fake_db):
    brand_id = repo.create_brand(fake_db, {'name': 'Acme'})
    repo.update_brand(fake_db, brand_id, {'name': 'Acme Co'})
    assert repo.list_brands(fake_db)[0]['name'] == 'Acme Co'
    assert 'updatedAt' not in fake_db.docs('brands')[brand_id]
    repo.delete_brand(fake_db, brand_id)
    assert repo.list_brands(fake_db) == []

    user_id = repo.create_user(fake_db, {'email': 'ops@example.com', 'role': 'operator'})
    repo.update_user(fake_db, user_id, {'role': 'admin'})
    assert repo.get_user_by_email(fake_db, 'ops@example.com')['role'] == 'admin'
    assert repo.get_user_by_email(fake_db, 'nobody@example.com') is None
    repo.delete_user(fake_db, user_id)
    assert repo.get_user_by_email(fake_db, 'ops@example.com') is None

    category_id = repo.create_category(fake_db, 'Beauty')
    assert [c['name'] for c in repo.list_categories(fake_db)] == ['Beauty']
    repo.delete_category(fake_db, category_id)
    assert repo.list_categories(fake_db) == []


@pytest.mark.parametrize('current, expected', [
    ('Discovery', 'Contacted'),
    ('Approved', 'Shipped'),
    ('Payment Pending', 'Paid'),
    ('Paid', 'Paid'),
])
def test_next_status(current, expected):
    assert repo.next_status(current) == expected


def test_next_status_unknown():
    with pytest.raises(ValueError):
        repo.next_status('Ghosted')


def test_advance_influencer_status(fake_db):
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a', 'status': 'Shipped'})

    assert repo.advance_influencer_status(fake_db, influencer_id, 'Shipped') == 'Content Live'
    assert repo.get_influencer(fake_db, influencer_id)['status'] == 'Content Live'


def test_advance_paid_is_noop(fake_db):
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a', 'status': 'Paid'})
    before = list(fake_db.docs('influencers')[influencer_id].items())

    assert repo.advance_influencer_status(fake_db, influencer_id, 'Paid') == 'Paid'
    assert list(fake_db.docs('influencers')[influencer_id].items()) == before


def test_process_payment(fake_db):
    project_id = repo.create_project(fake_db, {'name': 'Launch', 'spent': 100})
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a', 'status': 'Payment Pending', 'projectId': project_id})

    repo.process_payment(fake_db, influencer_id, project_id, 250)

    assert repo.get_influencer(fake_db, influencer_id)['status'] == 'Paid'
    assert repo.get_project(fake_db, project_id)['spent'] == 350
    assert fake_db.commits == [2]


def test_process_payment_missing_project(fake_db):
    influencer_id = repo.create_influencer(fake_db, {'handle': '@a', 'status': 'Payment Pending'})

    repo.process_payment(fake_db, influencer_id, 'missing', 50)

    assert repo.get_influencer(fake_db, influencer_id)['status'] == 'Paid'
    assert fake_db.commits == [1]


def test_add_influencers_to_project(fake_db):
    ids = [repo.create_influencer(fake_db, {'handle': f"@u{i}", 'status': 'Approved'}) for i in range(3)]

    assert repo.add_influencers_to_project(fake_db, ids, 'p1') == 3
    for influencer in repo.get_influencers_by_project(fake_db, 'p1'):
        assert influencer['status'] == 'Discovery'


def test_update_contract_and_logistics_merge(fake_db):
    influencer_id = repo.create_influencer(fake_db, {
        'handle': '@a',
        'contract': {'signed': False, 'deliverables': 2},
    })

    assert repo.update_contract(fake_db, influencer_id, {'signed': True})
    assert repo.update_logistics(fake_db, influencer_id, {'trackingNumber': '1Z999'})

    doc = fake_db.docs('influencers')[influencer_id]
    assert doc['contract'] == {'signed': True, 'deliverables': 2}
    assert doc['logistics'] == {'trackingNumber': '1Z999'}


def test_update_contract_missing_influencer(fake_db):
    assert repo.update_contract(fake_db, 'missing', {'signed': True}) is False
    assert repo.update_logistics(fake_db, 'missing', {'carrier': 'UPS'}) is False


def test_collection_counts_and_create_document(fake_db):
    repo.create_document(fake_db, 'brands', {'name': 'Acme'})
    repo.create_project(fake_db, {'name': 'Launch'})

    counts = repo.collection_counts(fake_db)

    assert counts == {'projects': 1, 'influencers': 0, 'brands': 1, 'users': 0, 'categories': 0}

    with pytest.raises(ValueError):
        repo.create_document(fake_db, 'secrets', {'x': 1})
