from io import BytesIO

import pytest

from auditguard.services import ai_service
from auditguard.services.ai_service import default_draft

REPORT_LINES = [
    'LIP Verification Report',
    'Lead Id: BLSA12345678',
    'Customer Name: Ramesh Kumar',
    'Report Date: 12/03/2026',
    'Visit Date & Time: 10/03/2026 11:45 AM',
    'Spouse: Lata',
    'Primary bank: HDFC',
    'Final Decision: Positive',
]


@pytest.fixture
def upload(client, make_pdf):
    def send(headers, lines=None, associate_id='A1'):
        data = {
            'file': (BytesIO(make_pdf(lines or REPORT_LINES)), 'report.pdf'),
            'associateId': associate_id,
        }
        return client.post('/api/upload-report', headers=headers, data=data,
                           content_type='multipart/form-data')
    return send


def test_upload_report(client, associate_headers, upload):
    client.post('/api/mis', headers=associate_headers, json={
        'leadId': 'BLSA12345678', 'customerName': 'Ramesh Kumar', 'inDate': '09-03-2026 10:00 AM',
    })

    response = upload(associate_headers)
    assert response.status_code == 201
    body = response.json
    assert body['leadId'] == 'BLSA12345678'
    assert body['reportDate'] == '2026-03-12'
    assert body['fileName'] == 'BLSA12345678_120326'

    report = body['report']
    assert report['id'].startswith('BLSA12345678_120326_')
    assert report['title'] == 'BLSA12345678 - Ramesh Kumar'
    assert report['associateId'] == 'A1'
    assert report['status'] == 'Pending'
    assert report['decision']['status'] == 'Positive'
    assert report['decision']['aiValidation']['match'] is True
    assert report['metrics']['photoCount'] == 5

    scores = report['scores']
    assert scores['completeness'] == 91
    assert scores['quality'] == 95
    breakdown = scores['comprehensiveBreakdown']
    sections = ('personal', 'business', 'banking', 'networth', 'existingDebt', 'endUse', 'referenceChecks')
    assert scores['comprehensive'] == sum(breakdown[key] for key in sections)
    assert breakdown['bankingMatches']['primaryBankerName'] is True

    tat = report['tat']
    assert tat['visitTime'] == '2026-03-10T11:45:00'
    assert tat['visitToReportHours'] == 48.0

    entry = client.get('/api/mis', headers=associate_headers).json[0]
    assert entry['workflowStatus'] == 'completed'
    assert entry['status'] == 'Completed'
    assert entry['outDate'] == '2026-03-12'


def test_upload_duplicate(associate_headers, upload):
    first = upload(associate_headers)
    second = upload(associate_headers)
    assert second.status_code == 409
    assert second.json['existingReportId'] == first.json['report']['id']


def test_upload_validation(client, associate_headers, upload):
    response = upload(associate_headers, lines=['Hello world'])
    assert response.status_code == 400
    assert response.json['error'] == 'Could not extract Lead ID from PDF'

    response = upload(associate_headers, lines=['Lead Id: BLSA87654321', 'Report Date: 12/03/2026'])
    assert response.status_code == 400
    assert response.json['error'] == 'Could not extract Decision from PDF'

    response = upload(associate_headers, associate_id='A99')
    assert response.status_code == 400

    response = client.post('/api/upload-report', headers=associate_headers, data={'associateId': 'A1'},
                           content_type='multipart/form-data')
    assert response.json['error'] == 'No file uploaded'


def test_list_reports_enriches_tat_from_mis(client, associate_headers, upload):
    client.post('/api/mis', headers=associate_headers, json={
        'leadId': 'BLSA12345678', 'customerName': 'Ramesh Kumar', 'inDate': '09-03-2026 10:00 AM',
    })
    upload(associate_headers)

    reports = client.get('/api/reports', headers=associate_headers).json
    assert len(reports) == 1
    tat = reports[0]['tat']
    assert tat['initiationTime'] == '2026-03-09T10:00:00'
    assert tat['initiationToVisitHours'] == 24.0
    assert tat['totalTATHours'] == 72.0
    assert 'pdfContent' not in reports[0]


def test_list_reports_hides_cancelled_leads(client, associate_headers, report_payload):
    client.post('/api/reports', headers=associate_headers, json=report_payload)
    client.post('/api/mis', headers=associate_headers, json={
        'leadId': 'BLSA40000001', 'customerName': 'Suresh', 'status': 'Cancelled',
    })
    assert client.get('/api/reports', headers=associate_headers).json == []
    simple = client.get('/api/reports?simple=true', headers=associate_headers).json
    assert len(simple) == 1


def test_list_reports_filters(client, associate_headers, report_payload):
    client.post('/api/reports', headers=associate_headers, json=report_payload)

    def count(query):
        return len(client.get(f'/api/reports?{query}', headers=associate_headers).json)

    assert count('month=3&year=2026') == 1
    assert count('month=04&year=2026') == 0
    assert count('associateId=A2') == 0
    assert count('status=Reviewed') == 1
    assert count('status=Flagged') == 0
    assert count('limit=1&offset=1') == 0


def test_create_report_validation(client, associate_headers, report_payload):
    response = client.post('/api/reports', headers=associate_headers, json={'associateId': 'A1'})
    assert response.status_code == 400
    assert response.json['error'] == 'Invalid report data'
    assert 'title is required' in response.json['details']

    response = client.post('/api/reports', headers=associate_headers, json={**report_payload, 'status': 'Done'})
    assert response.status_code == 400

    response = client.post('/api/reports', headers=associate_headers,
                           json={**report_payload, 'associateId': 'A99'})
    assert response.status_code == 400


def test_create_and_get_report(client, associate_headers, report_payload):
    response = client.post('/api/reports', headers=associate_headers, json=report_payload)
    assert response.status_code == 201
    report_id = response.json['id']
    assert report_id.startswith('A1_20260312_')

    fetched = client.get(f'/api/reports/{report_id}', headers=associate_headers)
    assert fetched.status_code == 200
    assert fetched.json['summary'] == 'Verified applicant.'
    assert client.get('/api/reports/missing', headers=associate_headers).status_code == 404


def test_delete_report_permissions(client, associate_headers, report_payload):
    report_id = client.post('/api/reports', headers=associate_headers, json=report_payload).json['id']

    other = client.post('/api/login', json={'username': 'narender', 'password': 'password123'}).json
    response = client.delete(f'/api/reports/{report_id}',
                             headers={'Authorization': f"Bearer {other['access_token']}"})
    assert response.status_code == 403

    response = client.delete(f'/api/reports/{report_id}', headers=associate_headers)
    assert response.status_code == 200
    assert client.get(f'/api/reports/{report_id}', headers=associate_headers).status_code == 404


def test_admin_can_delete_any_report(client, associate_headers, admin_headers, report_payload):
    report_id = client.post('/api/reports', headers=associate_headers, json=report_payload).json['id']
    assert client.delete(f'/api/reports/{report_id}', headers=admin_headers).status_code == 200


def test_download_report(client, associate_headers, upload, report_payload):
    uploaded = upload(associate_headers).json['report']['id']
    response = client.get(f'/api/reports/{uploaded}/download', headers=associate_headers)
    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')

    manual = client.post('/api/reports', headers=associate_headers, json=report_payload).json['id']
    response = client.get(f'/api/reports/{manual}/download', headers=associate_headers)
    assert response.status_code == 200
    assert response.data.startswith(b'%PDF')


def test_rescore_report(client, associate_headers, upload, report_payload):
    report_id = upload(associate_headers).json['report']['id']

    response = client.post(f'/api/reports/{report_id}/rescore', headers=associate_headers)
    assert response.status_code == 503

    response = client.post(f'/api/reports/{report_id}/rescore?method=rules', headers=associate_headers)
    assert response.status_code == 200
    assert response.json['method'] == 'rule-based'
    scores = response.json['scores']
    assert scores['quality'] == 95
    assert scores['comprehensiveBreakdown']['rationale'].startswith('Rule-based scoring completed.')

    manual = client.post('/api/reports', headers=associate_headers, json=report_payload).json['id']
    response = client.post(f'/api/reports/{manual}/rescore?method=rules', headers=associate_headers)
    assert response.status_code == 400


def test_update_initiation_time(client, associate_headers, upload):
    report_id = upload(associate_headers).json['report']['id']
    response = client.patch(f'/api/reports/{report_id}/initiation-time', headers=associate_headers,
                            json={'initiationTime': '2026-03-09T10:00:00'})
    assert response.status_code == 200
    tat = response.json['report']['tat']
    assert tat['initiationTime'] == '2026-03-09T10:00:00'
    assert tat['initiationToVisitHours'] == 24.0
    assert tat['totalTATHours'] == 72.0
    assert tat['visitToReportHours'] == 48.0

    response = client.patch(f'/api/reports/{report_id}/initiation-time', headers=associate_headers,
                            json={'initiationTime': 'yesterday'})
    assert response.status_code == 400
    response = client.patch('/api/reports/missing/initiation-time', headers=associate_headers, json={})
    assert response.status_code == 404


def test_update_tat_delay(client, associate_headers, report_payload):
    report_id = client.post('/api/reports', headers=associate_headers, json=report_payload).json['id']
    response = client.patch(f'/api/reports/{report_id}/tat-delay', headers=associate_headers,
                            json={'reason': 'Customer unavailable', 'remark': 'Visit rescheduled'})
    assert response.status_code == 200
    assert response.json['report']['tatDelayReason'] == 'Customer unavailable'
    assert response.json['report']['tatDelayRemark'] == 'Visit rescheduled'


def test_generate_draft_report(client, associate_headers):
    response = client.post('/api/generate-draft-report', headers=associate_headers, data={
        'leadId': 'BLSA55555555',
        'photo_1': (BytesIO(b'fake-image'), 'front.jpg'),
    }, content_type='multipart/form-data')
    assert response.status_code == 200
    assert response.json['draft']['leadId'] == 'BLSA55555555'
    assert response.json['filesProcessed'] == {'audio': 0, 'photos': 1}

    response = client.post('/api/generate-draft-report', headers=associate_headers, data={},
                           content_type='multipart/form-data')
    assert response.status_code == 400


def test_submit_draft_report(client, associate_headers):
    draft = default_draft('BLSA55555555')
    draft['recommendation'] = 'Positive - proceed'
    response = client.post('/api/submit-draft-report', headers=associate_headers, json=draft)
    assert response.status_code == 200

    report = response.json['report']
    assert report['id'].startswith('BLSA55555555_')
    assert report['associateId'] == 'A1'
    assert report['title'] == 'BLSA55555555 - Verification Report'
    assert report['decision']['status'] == 'Positive'
    assert report['scores']['overall'] == 7
    assert report['scores']['quality'] == 9
    assert report['metrics']['riskAnalysisDepth'] == 'Low'
    assert report['summary'].startswith('Field verification completed.')
    assert report['remarks'] == [draft['remarks']]
    assert report['pdfContent']


def test_generate_draft_pdf(client, associate_headers):
    response = client.post('/api/generate-draft-pdf', headers=associate_headers,
                           json=default_draft('BLSA55555555'))
    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')


def test_dashboard_stats(client, associate_headers, report_payload):
    client.post('/api/reports', headers=associate_headers, json=report_payload)
    stats = client.get('/api/dashboard?month=3&year=2026', headers=associate_headers).json
    assert stats['totalReports'] == 1
    assert stats['avgScore'] == 81
    bharat = next(a for a in stats['associates'] if a['id'] == 'A1')
    assert bharat['reportCount'] == 1
    assert bharat['avgScore'] == 81


def test_create_report_rejects_wrong_types(client, associate_headers, report_payload):
    response = client.post('/api/reports', headers=associate_headers, json={**report_payload, 'date': 20260312})
    assert response.status_code == 400
    assert response.json['error'] == 'Invalid report data'
    assert 'date must be a string' in response.json['details']

    response = client.post('/api/reports', headers=associate_headers, json={**report_payload, 'date': '12/03/2026'})
    assert response.status_code == 400
    assert 'date must be YYYY-MM-DD' in response.json['details']

    response = client.post('/api/reports', headers=associate_headers,
                           json={**report_payload, 'remarks': 'ok', 'scores': [81], 'title': 7})
    assert response.status_code == 400
    details = response.json['details']
    assert 'remarks must be a list' in details
    assert 'scores must be an object' in details
    assert 'title must be a string' in details


def test_list_reports_clamps_paging(client, associate_headers, report_payload):
    client.post('/api/reports', headers=associate_headers, json=report_payload)
    client.post('/api/reports', headers=associate_headers, json={**report_payload, 'leadId': 'BLSA40000002'})

    response = client.get('/api/reports?limit=-5', headers=associate_headers)
    assert response.status_code == 200
    assert len(response.json) == 1

    response = client.get('/api/reports?offset=-3', headers=associate_headers)
    assert response.status_code == 200
    assert len(response.json) == 2


def test_calculate_photo_score(client, associate_headers):
    response = client.post('/api/calculate-photo-score', headers=associate_headers, json={})
    assert response.status_code == 400
    assert response.json['error'] == 'Checklist data is required'

    response = client.post('/api/calculate-photo-score', headers=associate_headers, json={
        'checklist': {'personal': {'applicantPhoto': True, 'selfieWithVO': True}, 'banking': {'upiQR': True}},
    })
    assert response.status_code == 200
    assert response.json['total'] == 14
    assert response.json['maxTotal'] == 60
    assert response.json['percentage'] == 23


def test_analyze_business(app, client, associate_headers, monkeypatch):
    response = client.post('/api/analyze-business', headers=associate_headers, json={'businessName': 'Sri Kirana'})
    assert response.status_code == 400
    assert response.json['error'] == 'Business name and type are required'

    body = {'businessName': 'Sri Kirana', 'businessType': 'Trading'}
    response = client.post('/api/analyze-business', headers=associate_headers, json=body)
    assert response.status_code == 503

    app.config['AI_API_KEY'] = 'test-key'
    calls = []

    def analyze(name, business_type, **kwargs):
        calls.append((name, business_type, kwargs))
        return {'summary': 'Verified', 'recommendation': 'POSITIVE'}

    monkeypatch.setattr(ai_service, 'analyze_business', analyze)
    response = client.post('/api/analyze-business', headers=associate_headers,
                           json={**body, 'observations': ['Busy counter']})
    assert response.status_code == 200
    assert response.json['recommendation'] == 'POSITIVE'
    assert calls[0][0:2] == ('Sri Kirana', 'Trading')
    assert calls[0][2]['observations'] == ['Busy counter']
