"""
Authentication cache and credential exchange collaborators.

The cache mirrors the client-side "who am I" query: the current user is kept
in the Flask session, can be written optimistically, and refetch() reloads it
from the users table as the source of truth.
"""
from datetime import datetime

from flask import session as flask_session
from flask_jwt_extended import create_access_token, create_refresh_token

from auth_gate import AuthState
from demo_accounts import is_demo_role
from models import db, User

AUTH_USER_KEY = 'auth_user'
AUTH_READY_KEY = 'auth_ready'


class CredentialExchangeError(Exception):
    def __init__(self, message, status_code=401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DemoCredentialExchange:
    """Checks demo credentials against the users table and issues a JWT pair."""

    def exchange(self, username, password, role=None):
        user = User.query.filter_by(username=username).first()

        if not user or not user.check_password(password):
            raise CredentialExchangeError('Invalid username or password', 401)

        if not user.is_active:
            raise CredentialExchangeError('Account is inactive', 403)

        try:
            user.last_signed_in = datetime.utcnow()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            raise CredentialExchangeError(f'Could not record sign-in: {e}', 500)

        payload = user.to_dict()
        # Supplier signs in with the manager account but keeps its own role
        if role and is_demo_role(role):
            payload['role'] = role

        return {
            'success': True,
            'user': payload,
            'access_token': create_access_token(identity=str(user.id)),
            'refresh_token': create_refresh_token(identity=str(user.id)),
        }


class SessionAuthCache:

    def __init__(self, session_source=None):
        self._session_source = session_source or (lambda: flask_session)
        self.loading = False

    @property
    def session(self):
        return self._session_source()

    @property
    def is_ready(self):
        return bool(self.session.get(AUTH_READY_KEY))

    def read_current_user(self):
        return self.session.get(AUTH_USER_KEY)

    def write_current_user(self, user):
        if user is None:
            self.session.pop(AUTH_USER_KEY, None)
        else:
            self.session[AUTH_USER_KEY] = user

    def refetch(self):
        """Reload the cached user from the database."""
        self.loading = True
        try:
            cached = self.read_current_user()
            user = None
            if cached and cached.get('id') is not None:
                user = db.session.get(User, cached['id'])

            if user is None or not user.is_active:
                self.write_current_user(None)
                return None

            fresh = user.to_dict()
            # Keep the role the user signed in with (supplier uses the manager account)
            fresh['role'] = cached.get('role', fresh['role'])
            self.write_current_user(fresh)
            return fresh
        finally:
            self.session[AUTH_READY_KEY] = True
            self.loading = False

    def ensure_loaded(self):
        if not self.is_ready:
            self.refetch()
        return self.read_current_user()

    def clear(self):
        self.write_current_user(None)

    def state(self):
        return AuthState(is_auth_ready=self.is_ready, loading=self.loading)
