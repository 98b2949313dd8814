"""
User Model for Signage CMS.

Represents an administrator account. Admins sign in with email and
password; every dashboard endpoint requires an authenticated admin.
"""

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


class User(UserMixin, db.Model):
    """
    SQLAlchemy model representing an admin account.

    Attributes:
        id: Integer primary key
        email: Unique email address used for login (stored lower-case)
        name: Display name
        password_hash: Hashed password (never store plaintext)
        last_login: Timestamp of last successful login
        created_at: Timestamp when the user was created
    """

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login = db.Column(DateTimeUTC(), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)

    def set_password(self, password):
        """
        Hash and store the password.

        Args:
            password: Plain text password to hash and store
        """
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")

    def check_password(self, password):
        """
        Verify a password against the stored hash.

        Returns:
            True if password matches, False otherwise
        """
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'lastLogin': isoformat(self.last_login),
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'
