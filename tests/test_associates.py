from auditguard.extensions import db
from auditguard.models import MisEntry


def test_list_associates_excludes_admin(client, associate_headers):
    response = client.get('/api/associates', headers=associate_headers)
    assert response.status_code == 200
    ids = [a['id'] for a in response.json]
    assert 'ADMIN' not in ids
    assert ids[:2] == ['A1', 'A2']
    assert all('password' not in a for a in response.json)


def test_create_associate(client, admin_headers):
    response = client.post('/api/associates', headers=admin_headers, json={
        'username': 'Kiran', 'password': 'secret', 'name': 'Kiran Rao'
    })
    assert response.status_code == 200
    associate = response.json['associate']
    assert associate['id'] == 'A7'
    assert associate['username'] == 'kiran'
    assert associate['role'] == 'Verification Officer'

    login = client.post('/api/login', json={'username': 'kiran', 'password': 'secret'})
    assert login.status_code == 200


def test_create_associate_duplicate_username(client, admin_headers):
    response = client.post('/api/associates', headers=admin_headers, json={
        'username': 'bharat', 'password': 'x', 'name': 'Another'
    })
    assert response.status_code == 400
    assert response.json['error'] == 'Username already exists'


def test_create_associate_missing_fields(client, admin_headers):
    response = client.post('/api/associates', headers=admin_headers, json={'username': 'new'})
    assert response.status_code == 400


def test_create_associate_requires_admin(client, associate_headers):
    response = client.post('/api/associates', headers=associate_headers, json={
        'username': 'new', 'password': 'x', 'name': 'New'
    })
    assert response.status_code == 403
    assert response.json['error'] == 'Only admin can create associates'


def test_delete_associate(client, admin_headers):
    response = client.delete('/api/associates/A6', headers=admin_headers)
    assert response.status_code == 200
    assert response.json['message'] == 'Associate Anosh deleted'
    ids = [a['id'] for a in client.get('/api/associates', headers=admin_headers).json]
    assert 'A6' not in ids


def test_delete_admin_forbidden(client, admin_headers):
    response = client.delete('/api/associates/ADMIN', headers=admin_headers)
    assert response.status_code == 403
    assert response.json['error'] == 'Cannot delete admin user'


def test_delete_unknown_associate(client, admin_headers):
    assert client.delete('/api/associates/A99', headers=admin_headers).status_code == 404


def test_delete_associate_with_mis_entries(app, client, admin_headers):
    db.session.add(MisEntry(associate_id='A3', sno=1, lead_id='BLSA00000001', customer_name='Ravi'))
    db.session.commit()
    response = client.delete('/api/associates/A3', headers=admin_headers)
    assert response.status_code == 409


def test_next_id_skips_taken_ids(client, admin_headers):
    client.delete('/api/associates/A2', headers=admin_headers)
    # five associates remain, A6 is taken so the next free number is A7
    response = client.post('/api/associates', headers=admin_headers, json={
        'username': 'meena', 'password': 'x', 'name': 'Meena'
    })
    assert response.json['associate']['id'] == 'A7'


def test_dashboard_empty(client, associate_headers):
    response = client.get('/api/dashboard', headers=associate_headers)
    assert response.status_code == 200
    assert response.json['totalReports'] == 0
    assert response.json['avgScore'] == 0
    assert len(response.json['associates']) == 6
