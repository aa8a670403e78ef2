import sys

from werkzeug.security import generate_password_hash

from auditguard import create_app
from auditguard.extensions import db
from auditguard.services.user_service import ensure_default_users, find_by_username

app = create_app()

with app.app_context():
    db.create_all()
    created = ensure_default_users()
    print(f"Default users checked, {created} created.")

    # optional: python scripts/seed_users.py <username> <new password>
    if len(sys.argv) == 3:
        username, password = sys.argv[1].strip().lower(), sys.argv[2]
        user = find_by_username(username)
        if user is None:
            print(f"User '{username}' not found.")
            sys.exit(1)
        user.password = generate_password_hash(password)
        db.session.commit()
        print(f"Password updated for '{username}'.")
