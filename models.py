from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

# --- MODELS ---

class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    # farmer | field_officer | manager | supplier | admin
    role = db.Column(db.String(50), nullable=False)
    login_method = db.Column(db.String(50), default='password')
    is_active = db.Column(db.Boolean, default=True)
    last_signed_in = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'login_method': self.login_method,
            'is_active': self.is_active,
            'last_signed_in': self.last_signed_in.isoformat() if self.last_signed_in else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class DemoStateEntry(db.Model):
    """Durable key/value row backing the demo storage adapter."""
    __tablename__ = 'demo_state'
    __table_args__ = (
        db.UniqueConstraint('scope', 'key', name='uq_demo_state_scope_key'),
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(100), nullable=False, index=True)
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.String(255), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

