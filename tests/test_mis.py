from io import BytesIO

import pandas as pd

from auditguard.extensions import db
from auditguard.models import MisEntry
from auditguard.services import mis_service


def _create(client, headers, **fields):
    payload = {'leadId': 'BLSA10000001', 'customerName': 'Ravi Kumar'}
    payload.update(fields)
    return client.post('/api/mis', headers=headers, json=payload)


def test_create_entry_defaults_to_caller(client, associate_headers):
    response = _create(client, associate_headers, inDate='12-03-2026 10:30 AM')
    assert response.status_code == 200
    entry = response.json
    assert entry['associateId'] == 'A1'
    assert entry['sno'] == 1
    assert entry['status'] == 'Pending'
    assert entry['workflowStatus'] == 'unassigned'

    second = _create(client, associate_headers, leadId='BLSA10000002')
    assert second.json['sno'] == 2


def test_create_entry_validation(client, associate_headers):
    response = client.post('/api/mis', headers=associate_headers, json={'leadId': 'BLSA10000001'})
    assert response.status_code == 400
    response = _create(client, associate_headers, associateId='A99')
    assert response.status_code == 400


def test_list_entries_newest_first(client, associate_headers):
    _create(client, associate_headers, leadId='BLSA10000001')
    _create(client, associate_headers, leadId='BLSA10000002')
    response = client.get('/api/mis', headers=associate_headers)
    assert [e['sno'] for e in response.json] == [2, 1]


def test_bulk_create_skips_duplicates_and_invalid(client, associate_headers):
    _create(client, associate_headers, leadId='BLSA10000001', customerName='Ravi Kumar')
    response = client.post('/api/mis/bulk', headers=associate_headers, json={
        'associateId': 'A2',
        'entries': [
            {'leadId': 'BLSA10000001', 'customerName': 'Ravi Kumar'},
            {'leadId': 'BLSA10000003', 'customerName': ''},
            {'leadId': 'X'},
            {'leadId': 'BLSA10000004', 'customerName': 'Sita'},
        ],
    })
    assert response.status_code == 200
    created = response.json['entries']
    assert [e['leadId'] for e in created] == ['BLSA10000003', 'BLSA10000004']
    # blank customer name falls back to the lead id
    assert created[0]['customerName'] == 'BLSA10000003'
    assert [e['sno'] for e in created] == [2, 3]
    assert all(e['associateId'] == 'A2' for e in created)
    assert response.json['skipped'] == 2


def test_bulk_create_nothing_valid(client, associate_headers):
    response = client.post('/api/mis/bulk', headers=associate_headers, json={
        'associateId': 'A1', 'entries': [{'leadId': 'AB'}, 'junk'],
    })
    assert response.status_code == 400
    assert response.json['error'].startswith('No valid entries found')


def test_bulk_create_invalid_body(client, associate_headers):
    response = client.post('/api/mis/bulk', headers=associate_headers, json={'associateId': 'A1'})
    assert response.status_code == 400
    assert response.json['error'] == 'Invalid request body'
    response = client.post('/api/mis/bulk', headers=associate_headers, json={
        'associateId': 'NOPE', 'entries': [{'leadId': 'BLSA10000009', 'customerName': 'A'}],
    })
    assert response.status_code == 400


def test_update_entry_assignment(client, associate_headers):
    entry_id = _create(client, associate_headers).json['id']
    response = client.patch(f'/api/mis/{entry_id}', headers=associate_headers, json={
        'pdPersonId': 'A2', 'pdPerson': 'Narender', 'workflowStatus': 'assigned',
    })
    assert response.status_code == 200
    assert response.json['pdPersonId'] == 'A2'
    assert response.json['assignedAt'] is not None

    response = client.patch(f'/api/mis/{entry_id}', headers=associate_headers, json={
        'pdPersonId': None, 'workflowStatus': 'unassigned',
    })
    assert response.json['assignedAt'] is None
    assert response.json['pdPersonId'] is None


def test_update_and_delete_missing_entry(client, associate_headers):
    assert client.patch('/api/mis/999', headers=associate_headers, json={}).status_code == 404
    assert client.delete('/api/mis/999', headers=associate_headers).status_code == 404


def test_delete_entry(client, associate_headers):
    entry_id = _create(client, associate_headers).json['id']
    response = client.delete(f'/api/mis/{entry_id}', headers=associate_headers)
    assert response.status_code == 200
    assert client.get('/api/mis', headers=associate_headers).json == []


def test_import_excel(client, associate_headers):
    buffer = BytesIO()
    pd.DataFrame([
        {'Lead ID': 'BLSA20000001', 'Customer Name': 'Asha', 'In Date': '12-03-2026 10:30 AM', 'Product': 'LAP'},
        {'Lead ID': 'BLSA20000002', 'Customer Name': 'Vijay', 'In Date': None, 'Product': 'BL'},
    ]).to_excel(buffer, index=False)
    buffer.seek(0)

    response = client.post('/api/mis/import-excel', headers=associate_headers,
                           data={'file': (buffer, 'allocation.xlsx'), 'associateId': 'A1'},
                           content_type='multipart/form-data')
    assert response.status_code == 200
    created = response.json['entries']
    assert [e['leadId'] for e in created] == ['BLSA20000001', 'BLSA20000002']
    assert created[0]['inDate'] == '12-03-2026 10:30 AM'
    assert created[1]['inDate'] is None
    assert created[0]['product'] == 'LAP'


def test_export_excel(client, associate_headers):
    _create(client, associate_headers)
    response = client.get('/api/mis/export-excel', headers=associate_headers)
    assert response.status_code == 200
    assert response.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

    sheets = pd.read_excel(BytesIO(response.data), sheet_name=None)
    assert set(sheets) == {'MIS', 'Summary'}
    assert sheets['MIS']['Lead ID'].tolist() == ['BLSA10000001']


def test_mark_completed_picks_first_open_entry(app):
    db.session.add_all([
        MisEntry(associate_id='A1', sno=1, lead_id='BLSA30000001', customer_name='One',
                 workflow_status='completed', status='Completed'),
        MisEntry(associate_id='A1', sno=2, lead_id='BLSA30000001', customer_name='Two'),
        MisEntry(associate_id='A1', sno=3, lead_id='BLSA30000001', customer_name='Three'),
    ])
    db.session.commit()

    mis_service.mark_mis_entry_completed(' BLSA30000001 ', '2026-03-12')

    entries = db.session.execute(db.select(MisEntry).order_by(MisEntry.sno)).scalars().all()
    assert [e.workflow_status for e in entries] == ['completed', 'completed', 'unassigned']
    assert entries[1].status == 'Completed'
    assert entries[1].out_date == '2026-03-12'


def test_mark_completed_ignores_blank_lead():
    mis_service.mark_mis_entry_completed('   ')
