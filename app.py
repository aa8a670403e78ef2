import os

from auditguard import create_app
from auditguard.extensions import db
from auditguard.services.user_service import ensure_default_users

app = create_app(os.environ.get('AUDITGUARD_ENV', 'default'))

with app.app_context():
    db.create_all()
    ensure_default_users()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=app.config['DEBUG'])
