from io import BytesIO

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from auditguard import create_app
from auditguard.extensions import db
from auditguard.services.user_service import ensure_default_users


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        ensure_default_users()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, username):
    response = client.post('/api/login', json={'username': username, 'password': 'password123'})
    assert response.status_code == 200
    return response.json['access_token']


@pytest.fixture
def admin_token(client):
    return _login(client, 'admin')


@pytest.fixture
def associate_token(client):
    return _login(client, 'bharat')


@pytest.fixture
def admin_headers(admin_token):
    return {'Authorization': f'Bearer {admin_token}'}


@pytest.fixture
def associate_headers(associate_token):
    return {'Authorization': f'Bearer {associate_token}'}


@pytest.fixture
def make_pdf():
    """Build a one page PDF with one line of text per entry"""
    def build(lines):
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=letter)
        y = 750
        for line in lines:
            pdf.drawString(72, y, line)
            y -= 18
        pdf.save()
        return buffer.getvalue()
    return build


@pytest.fixture
def report_payload():
    return {
        'associateId': 'A1',
        'leadId': 'BLSA40000001',
        'title': 'BLSA40000001 - Suresh',
        'date': '2026-03-12',
        'status': 'Reviewed',
        'metrics': {'totalFields': 100, 'filledFields': 90},
        'scores': {'overall': 81, 'comprehensive': 70, 'quality': 92, 'completeness': 90},
        'decision': {'status': 'Positive', 'remarks': 'All checks passed'},
        'remarks': ['Verified'],
        'summary': 'Verified applicant.',
    }
