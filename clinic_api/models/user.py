from clinic_api.extensions import db, bcrypt
from .base import TimestampMixin, isoformat

ROLES = ('admin', 'doctor', 'receptionist', 'accountant')


class User(db.Model, TimestampMixin):
    """Clinic staff account. Super admins have no clinic and see every tenant."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=True, index=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False, default='')
    phone = db.Column(db.String(20))
    specialization = db.Column(db.String(100))  # doctors only

    # Role - one of ROLES
    role = db.Column(db.String(20), nullable=False, index=True)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_super_admin = db.Column(db.Boolean, default=False, nullable=False)

    # Last login tracking
    last_login = db.Column(db.DateTime, nullable=True)
    login_count = db.Column(db.Integer, default=0)

    # Password reset / first-time setup
    reset_token = db.Column(db.String(100), nullable=True, index=True)
    reset_token_expiry = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    def has_any_role(self, *role_names):
        return self.is_super_admin or self.role in role_names

    def is_doctor(self):
        return self.role == 'doctor'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def token_claims(self):
        """Extra JWT claims carried with the identity."""
        return {
            'username': self.username,
            'role': self.role,
            'is_super_admin': self.is_super_admin,
            'clinic_id': self.clinic_id,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'username': self.username,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'specialization': self.specialization,
            'role': self.role,
            'is_active': self.is_active,
            'is_super_admin': self.is_super_admin,
            'last_login': isoformat(self.last_login),
            'login_count': self.login_count,
            'created_at': isoformat(self.created_at),
        }

    def to_summary(self):
        return {'id': self.id, 'first_name': self.first_name, 'last_name': self.last_name}

    def __repr__(self):
        return f"<User {self.username} ({self.first_name} {self.last_name}) - {self.role}>"
