"""
HTTP tests for clinics, patients, prescriptions, notifications and health checks.
"""
from unittest.mock import patch

from clinic_api.extensions import db
from clinic_api.models import Clinic, Notification, Patient, User


class TestClinics:

    def test_super_admin_creates_clinic_with_admin(self, app, client, auth):
        response = client.post(
            '/api/clinics',
            json={
                'name': 'Hillside Clinic',
                'phone': '+15550000003',
                'currency': 'eur',
                'admin': {'username': 'hilladmin', 'email': 'hill@clinic.test', 'firstName': 'Hill'},
            },
            headers=auth('super'),
        )
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['currency'] == 'EUR'
        assert data['admin']['role'] == 'admin'
        assert data['admin']['clinic_id'] == data['id']
        assert data['admin']['is_active'] is False

    def test_clinic_admin_cannot_create_clinic(self, client, auth):
        response = client.post('/api/clinics', json={'name': 'Nope', 'phone': '+15550000009'}, headers=auth('admin'))
        assert response.status_code == 403

    def test_staff_list_only_own_clinic(self, client, auth, ids):
        data = client.get('/api/clinics', headers=auth('receptionist')).get_json()['data']
        assert [c['id'] for c in data['clinics']] == [ids['clinic']]
        everyone = client.get('/api/clinics', headers=auth('super')).get_json()['data']
        assert everyone['pagination']['total'] == 2

    def test_cannot_read_other_clinic(self, client, auth, ids):
        response = client.get(f'/api/clinics/{ids["other_clinic"]}', headers=auth('admin'))
        assert response.status_code == 403

    def test_admin_updates_own_clinic(self, client, auth, ids):
        response = client.put(f'/api/clinics/{ids["clinic"]}', json={'sendReminders': False}, headers=auth('admin'))
        assert response.status_code == 200
        assert response.get_json()['data']['send_reminders'] is False

    def test_deactivated_clinic_cannot_book(self, app, client, auth, ids, future_day):
        client.delete(f'/api/clinics/{ids["clinic"]}', headers=auth('super'))
        with app.app_context():
            assert db.session.get(Clinic, ids['clinic']).is_active is False
        response = client.post(
            '/api/appointments',
            json={
                'patientId': ids['patient'],
                'doctorId': ids['doctor'],
                'scheduledDate': future_day.isoformat(),
                'scheduledTime': {'start': '09:00', 'end': '09:30'},
                'reason': 'Checkup',
            },
            headers=auth('receptionist'),
        )
        assert response.status_code == 404


class TestPatients:

    def test_create_and_duplicate_phone(self, client, auth):
        body = {'firstName': 'Ann', 'lastName': 'Lee', 'phone': '+15559990000', 'gender': 'female'}
        assert client.post('/api/patients', json=body, headers=auth('receptionist')).status_code == 201

        duplicate = client.post('/api/patients', json=body, headers=auth('receptionist'))
        assert duplicate.status_code == 409
        assert 'phone' in duplicate.get_json()['errors']

    def test_same_phone_in_other_clinic_allowed(self, client, auth):
        body = {'firstName': 'Ann', 'lastName': 'Lee', 'phone': '+15551234567'}
        assert client.post('/api/patients', json=body, headers=auth('other_admin')).status_code == 201

    def test_soft_delete(self, app, client, auth, ids):
        response = client.delete(f'/api/patients/{ids["patient"]}', headers=auth('admin'))
        assert response.status_code == 200
        assert client.get(f'/api/patients/{ids["patient"]}', headers=auth('admin')).status_code == 404
        with app.app_context():
            assert db.session.get(Patient, ids['patient']).deleted_at is not None

    def test_history(self, client, auth, ids, future_day):
        client.post(
            '/api/appointments',
            json={
                'patientId': ids['patient'],
                'doctorId': ids['doctor'],
                'scheduledDate': future_day.isoformat(),
                'scheduledTime': {'start': '09:00', 'end': '09:30'},
                'reason': 'Checkup',
            },
            headers=auth('receptionist'),
        )
        client.post(
            '/api/invoices',
            json={'patientId': ids['patient'], 'items': [{'description': 'Visit', 'unitPrice': 50}]},
            headers=auth('accountant'),
        )
        data = client.get(f'/api/patients/{ids["patient"]}/history', headers=auth('doctor')).get_json()['data']
        assert data['summary']['total_appointments'] == 1
        assert data['summary']['total_billed'] == 50.0
        assert len(data['invoices']) == 1


class TestPrescriptions:

    def _create(self, client, auth, ids, role='doctor'):
        return client.post(
            '/api/prescriptions',
            json={
                'patientId': ids['patient'],
                'diagnosis': 'Bronchitis',
                'items': [{'medicine': 'Amoxicillin', 'dosage': '1-0-1', 'durationDays': 7}],
            },
            headers=auth(role),
        )

    def test_doctor_prescribes(self, client, auth, ids):
        response = self._create(client, auth, ids)
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['doctor_id'] == ids['doctor']
        assert data['items'][0]['duration_days'] == 7

    def test_receptionist_cannot_prescribe(self, client, auth, ids):
        assert self._create(client, auth, ids, role='receptionist').status_code == 403

    def test_only_author_updates(self, client, auth, ids):
        prescription_id = self._create(client, auth, ids).get_json()['data']['id']
        other = client.put(f'/api/prescriptions/{prescription_id}', json={'notes': 'x'}, headers=auth('doctor2'))
        assert other.status_code == 403
        own = client.put(f'/api/prescriptions/{prescription_id}', json={'status': 'completed'}, headers=auth('doctor'))
        assert own.get_json()['data']['status'] == 'completed'


class TestNotifications:

    def test_send_and_read(self, client, auth, ids):
        sent = client.post(
            '/api/notifications',
            json={'recipientId': ids['doctor'], 'title': 'Lab results', 'message': 'Results are in'},
            headers=auth('receptionist'),
        )
        assert sent.status_code == 201
        notification_id = sent.get_json()['data']['id']

        assert client.get('/api/notifications/unread-count', headers=auth('doctor')).get_json()['data']['count'] == 1
        client.put(f'/api/notifications/{notification_id}/read', headers=auth('doctor'))
        assert client.get('/api/notifications/unread-count', headers=auth('doctor')).get_json()['data']['count'] == 0

    def test_cannot_message_other_clinic(self, client, auth, ids):
        response = client.post(
            '/api/notifications',
            json={'recipientId': ids['other_doctor'], 'title': 'Hi', 'message': 'Hello'},
            headers=auth('receptionist'),
        )
        assert response.status_code == 404

    def test_cannot_read_someone_elses(self, app, client, auth, ids):
        with app.app_context():
            notification = Notification(recipient_id=ids['doctor'], type='general', title='t', message='m')
            db.session.add(notification)
            db.session.commit()
            notification_id = notification.id
        response = client.put(f'/api/notifications/{notification_id}/read', headers=auth('doctor2'))
        assert response.status_code == 404

    def test_mark_all_read(self, app, client, auth, ids):
        with app.app_context():
            for i in range(3):
                db.session.add(Notification(recipient_id=ids['admin'], type='general', title=f't{i}', message='m'))
            db.session.commit()
        response = client.put('/api/notifications/read-all', headers=auth('admin'))
        assert response.get_json()['data']['updated'] == 3


class TestHealthAndErrors:

    def test_health(self, client):
        assert client.get('/health').get_json()['status'] == 'healthy'
        assert client.get('/health/ready').get_json()['database'] == 'connected'

    def test_ready_reports_broker_and_channels(self, client):
        data = client.get('/health/ready').get_json()
        assert data['status'] == 'ready'
        assert data['broker'] == 'eager'
        assert data['channels'] == {'email': False, 'sms': False}

    def test_broker_outage_is_degraded(self, client):
        with patch('clinic_api.routes.health.celery') as broker:
            broker.conf.task_always_eager = False
            broker.connection_for_write.side_effect = OSError('connection refused')
            response = client.get('/health/ready')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'degraded'
        assert data['broker'] == 'error: connection refused'

    def test_unknown_endpoint_uses_envelope(self, client):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'message': 'Endpoint not found'}

    def test_non_json_body(self, client, auth):
        response = client.post('/api/patients', data='nope', headers=auth('admin'))
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Request body must be JSON'

    def test_deactivated_user_token_rejected(self, app, client, auth, ids):
        headers = auth('receptionist')
        with app.app_context():
            db.session.get(User, ids['receptionist']).is_active = False
            db.session.commit()
        assert client.get('/api/appointments', headers=headers).status_code == 401
