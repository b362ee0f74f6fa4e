"""Fixed demo accounts used by the login page and the auto-login bootstrap."""
from datetime import datetime

from models import db, User

DEMO_ROLES = ('farmer', 'field_officer', 'manager', 'supplier')
DEMO_PASSWORD = 'demo123'

# Supplier has no account of its own and signs in as the manager
DEMO_CREDENTIALS = {
    'farmer': {'username': 'farmer', 'password': DEMO_PASSWORD},
    'field_officer': {'username': 'officer', 'password': DEMO_PASSWORD},
    'manager': {'username': 'manager', 'password': DEMO_PASSWORD},
    'supplier': {'username': 'manager', 'password': DEMO_PASSWORD},
}

DEMO_PROFILES = {
    'farmer': {'username': 'farmer', 'full_name': 'Juan dela Cruz', 'email': 'juan.delacruz@example.com'},
    'field_officer': {'username': 'officer', 'full_name': 'Maria Santos', 'email': 'maria.santos@magsasa.org'},
    'manager': {'username': 'manager', 'full_name': 'Roberto Garcia', 'email': 'roberto.garcia@magsasa.org'},
}

USERNAME_ROLES = {profile['username']: role for role, profile in DEMO_PROFILES.items()}


def is_demo_role(value):
    return value in DEMO_ROLES


def role_for_username(username):
    return USERNAME_ROLES.get(username)


def credentials_for(role):
    if not is_demo_role(role):
        raise ValueError(f"Unknown demo role: {role}")
    return dict(DEMO_CREDENTIALS[role])


def ensure_demo_accounts():
    """Create the demo users that do not exist yet. Returns the created ones."""
    created = []
    for role, profile in DEMO_PROFILES.items():
        if User.query.filter_by(username=profile['username']).first():
            continue
        user = User(
            username=profile['username'],
            email=profile['email'],
            full_name=profile['full_name'],
            role=role,
            login_method='demo',
            created_at=datetime.utcnow()
        )
        user.set_password(DEMO_PASSWORD)
        db.session.add(user)
        created.append(user)
    if created:
        db.session.commit()
    return created
