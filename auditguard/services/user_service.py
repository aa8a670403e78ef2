import logging

from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash

from auditguard.extensions import db
from auditguard.models import User, Report, MisEntry, ADMIN_ID

logger = logging.getLogger(__name__)

AVATAR_URL = 'https://images.unsplash.com/{photo}?w=150&q=80'
DEFAULT_AVATAR = AVATAR_URL.format(photo='photo-1472099645785-5658abf4ff4e')

DEFAULT_USERS = [
    (ADMIN_ID, 'admin', 'photo-1472099645785-5658abf4ff4e'),
    ('A1', 'bharat', 'photo-1599566150163-29194dcaad36'),
    ('A2', 'narender', 'photo-1535713875002-d1d0cf377fde'),
    ('A3', 'upender', 'photo-1527980965255-d3b416303d12'),
    ('A4', 'avinash', 'photo-1633332755192-727a05c4013d'),
    ('A5', 'prashanth', 'photo-1506794778202-cad84cf45f1d'),
    ('A6', 'anosh', 'photo-1507003211169-0a1dd7228f2d'),
]


def ensure_default_users():
    """Insert any missing default user. Existing rows are left untouched."""
    password = current_app.config.get('DEFAULT_PASSWORD', 'password123')
    created = 0
    for user_id, username, photo in DEFAULT_USERS:
        if db.session.get(User, user_id) is not None:
            continue
        is_admin = user_id == ADMIN_ID
        db.session.add(User(
            id=user_id,
            username=username,
            password=generate_password_hash(password),
            name='Admin' if is_admin else username.capitalize(),
            role='System Administrator' if is_admin else 'Verification Officer',
            avatar=AVATAR_URL.format(photo=photo),
        ))
        created += 1
    db.session.commit()
    if created:
        logger.info("Seeded %d default users", created)
    return created


def find_by_username(username):
    return db.session.execute(
        db.select(User).filter_by(username=username)
    ).scalar_one_or_none()


def authenticate(username, password):
    user = find_by_username(username.strip().lower())
    if user is None or not check_password_hash(user.password, password):
        return None
    return user


def list_associates():
    return db.session.execute(
        db.select(User).filter(User.id != ADMIN_ID).order_by(User.id)
    ).scalars().all()


def next_associate_id():
    count = db.session.execute(
        db.select(db.func.count(User.id)).filter(User.id != ADMIN_ID)
    ).scalar() or 0
    number = count + 1
    while db.session.get(User, f'A{number}') is not None:
        number += 1
    return f'A{number}'


def create_associate(username, password, name, role=None, avatar=None):
    user = User(
        id=next_associate_id(),
        username=username.strip().lower(),
        password=generate_password_hash(password),
        name=name,
        role=role or 'Verification Officer',
        avatar=avatar or DEFAULT_AVATAR,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("Created new associate: %s (%s)", user.id, user.name)
    return user


def has_linked_records(user_id):
    report = db.session.execute(db.select(Report.id).filter_by(associate_id=user_id).limit(1)).first()
    if report is not None:
        return True
    entry = db.session.execute(
        db.select(MisEntry.id).filter(
            (MisEntry.associate_id == user_id)
            | (MisEntry.pd_person_id == user_id)
            | (MisEntry.pd_typing_id == user_id)
        ).limit(1)
    ).first()
    return entry is not None
