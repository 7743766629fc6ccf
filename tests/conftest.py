"""
Shared fixtures: an app on in-memory SQLite with eager Celery, two clinics
and a staff member for every role.
"""
from datetime import date, timedelta

import pytest
from flask_jwt_extended import create_access_token

from clinic_api import create_app
from clinic_api.extensions import db
from clinic_api.models import Clinic, Patient, User

PASSWORD = 'password123'


def _user(username, role, clinic=None, is_super_admin=False, **extra):
    user = User(
        clinic_id=clinic.id if clinic else None,
        username=username,
        email=f'{username}@clinic.test',
        first_name=username.capitalize(),
        last_name='Test',
        role=role,
        is_active=True,
        is_super_admin=is_super_admin,
        **extra,
    )
    user.set_password(PASSWORD)
    db.session.add(user)
    return user


def _seed():
    main = Clinic(name='Main Street Clinic', phone='+15550000001', email='main@clinic.test')
    other = Clinic(name='Riverside Clinic', phone='+15550000002', email='river@clinic.test')
    db.session.add_all([main, other])
    db.session.flush()

    users = {
        'super': _user('root', 'admin', is_super_admin=True),
        'admin': _user('admin', 'admin', main),
        'doctor': _user('doctor', 'doctor', main, specialization='General'),
        'doctor2': _user('doctor2', 'doctor', main, specialization='Pediatrics'),
        'receptionist': _user('reception', 'receptionist', main),
        'accountant': _user('accountant', 'accountant', main),
        'other_doctor': _user('otherdoc', 'doctor', other),
        'other_admin': _user('otheradmin', 'admin', other),
    }
    patient = Patient(clinic_id=main.id, first_name='Jane', last_name='Doe', phone='+15551234567',
                      email='jane@example.com')
    other_patient = Patient(clinic_id=other.id, first_name='John', last_name='Roe', phone='+15557654321')
    db.session.add_all([patient, other_patient])
    db.session.commit()

    ids = {key: user.id for key, user in users.items()}
    ids.update({
        'clinic': main.id,
        'other_clinic': other.id,
        'patient': patient.id,
        'other_patient': other_patient.id,
    })
    return ids


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        app.config['SEED'] = _seed()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ids(app):
    """Primary keys of the seeded rows."""
    return app.config['SEED']


@pytest.fixture
def ctx(app):
    """App context for calling services and tasks directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth(app, ids):
    """auth('receptionist') -> Authorization header for that seeded user."""
    def headers(key):
        with app.app_context():
            user = db.session.get(User, ids[key])
            token = create_access_token(identity=str(user.id), additional_claims=user.token_claims())
        return {'Authorization': f'Bearer {token}'}
    return headers


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=7)
