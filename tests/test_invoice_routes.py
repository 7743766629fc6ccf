"""
HTTP tests for /api/invoices and /api/payments.
"""
from datetime import date, timedelta
from decimal import Decimal

from clinic_api.extensions import db
from clinic_api.models import Invoice, Notification, Payment


def _create(client, auth, ids, items=None, role='accountant', **extra):
    body = {
        'patientId': ids['patient'],
        'items': items or [{'description': 'Consultation', 'category': 'consultation', 'unitPrice': 100, 'tax': 10}],
    }
    body.update(extra)
    return client.post('/api/invoices', json=body, headers=auth(role))


def _pay(client, auth, invoice_id, amount, role='receptionist'):
    return client.post(
        f'/api/invoices/{invoice_id}/payment',
        json={'amount': amount, 'paymentMethod': 'cash'},
        headers=auth(role),
    )


class TestCreateInvoice:

    def test_create_returns_totals(self, client, auth, ids):
        response = _create(client, auth, ids)
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['subtotal'] == 110.0
        assert data['total_amount'] == 110.0
        assert data['balance_due'] == 110.0
        assert data['status'] == 'pending'
        assert data['items'][0]['total'] == 110.0

    def test_discount_and_tax(self, client, auth, ids):
        items = [{'description': 'Procedure', 'quantity': 2, 'unitPrice': 100, 'discount': 10, 'tax': 5}]
        data = _create(client, auth, ids, items=items).get_json()['data']
        assert data['total_amount'] == 189.0

    def test_empty_items_rejected(self, client, auth, ids):
        response = client.post('/api/invoices', json={'patientId': ids['patient'], 'items': []},
                               headers=auth('accountant'))
        assert response.status_code == 400
        assert 'items' in response.get_json()['errors']

    def test_due_before_invoice_date_rejected(self, client, auth, ids):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        response = _create(client, auth, ids, dueDate=yesterday)
        assert response.status_code == 400

    def test_doctor_cannot_bill(self, client, auth, ids):
        assert _create(client, auth, ids, role='doctor').status_code == 403

    def test_super_admin_must_name_clinic(self, client, auth, ids):
        assert _create(client, auth, ids, role='super').status_code == 403
        response = _create(client, auth, ids, role='super', clinicId=ids['clinic'])
        assert response.status_code == 201

    def test_staff_notified(self, app, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        with app.app_context():
            recipients = {
                n.recipient_id
                for n in Notification.query.filter_by(type='invoice-generated', related_id=invoice_id)
            }
        assert recipients == {ids['admin'], ids['accountant']}


class TestPayments:

    def test_pay_in_full(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        response = _pay(client, auth, invoice_id, 110)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['invoice']['status'] == 'paid'
        assert data['invoice']['balance_due'] == 0.0
        assert data['payment']['amount'] == 110.0

        again = _pay(client, auth, invoice_id, 1)
        assert again.status_code == 400

    def test_overpayment_rejected_and_invoice_unchanged(self, app, client, auth, ids):
        items = [{'description': 'Procedure', 'unitPrice': 100}]
        invoice_id = _create(client, auth, ids, items=items).get_json()['data']['id']
        assert _pay(client, auth, invoice_id, 80).get_json()['data']['invoice']['status'] == 'partially-paid'

        response = _pay(client, auth, invoice_id, 25)
        assert response.status_code == 400
        assert 'amount' in response.get_json()['errors']

        with app.app_context():
            invoice = db.session.get(Invoice, invoice_id)
            assert invoice.amount_paid == Decimal('80.00')
            assert invoice.balance_due == Decimal('20.00')
            assert Payment.query.filter_by(invoice_id=invoice_id).count() == 1

    def test_zero_amount_rejected(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        response = _pay(client, auth, invoice_id, 0)
        assert response.status_code == 400
        assert 'amount' in response.get_json()['errors']

    def test_payments_endpoint_records_against_invoice(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        response = client.post(
            '/api/payments',
            json={'invoiceId': invoice_id, 'amount': 10, 'paymentMethod': 'credit-card', 'transactionId': 'tx-1'},
            headers=auth('accountant'),
        )
        assert response.status_code == 200
        assert response.get_json()['data']['invoice']['balance_due'] == 100.0

    def test_refund_restores_balance(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        payment_id = _pay(client, auth, invoice_id, 110).get_json()['data']['payment']['id']

        response = client.post(f'/api/payments/{payment_id}/refund', json={'reason': 'Duplicate charge'},
                               headers=auth('accountant'))
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['payment']['status'] == 'refunded'
        assert data['invoice']['status'] == 'pending'
        assert data['invoice']['balance_due'] == 110.0

    def test_refund_requires_reason(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        payment_id = _pay(client, auth, invoice_id, 50).get_json()['data']['payment']['id']
        response = client.post(f'/api/payments/{payment_id}/refund', json={}, headers=auth('accountant'))
        assert response.status_code == 400

    def test_receptionist_cannot_refund(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        payment_id = _pay(client, auth, invoice_id, 50).get_json()['data']['payment']['id']
        response = client.post(f'/api/payments/{payment_id}/refund', json={'reason': 'x'},
                               headers=auth('receptionist'))
        assert response.status_code == 403

    def test_payment_stats(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        payment_id = _pay(client, auth, invoice_id, 110).get_json()['data']['payment']['id']
        client.post(f'/api/payments/{payment_id}/refund', json={'reason': 'Mistake', 'amount': 10},
                    headers=auth('accountant'))

        stats = client.get('/api/payments/stats', headers=auth('accountant')).get_json()['data']
        assert stats['total_collected'] == 110.0
        assert stats['total_refunded'] == 10.0
        assert stats['net_collected'] == 100.0


class TestCancelAndDelete:

    def test_cancel_with_payment_rejected(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        _pay(client, auth, invoice_id, 10)
        response = client.post(f'/api/invoices/{invoice_id}/cancel', json={'reason': 'Wrong patient'},
                               headers=auth('admin'))
        assert response.status_code == 400

    def test_partially_refunded_invoice_cannot_be_cancelled_or_deleted(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        payment_id = _pay(client, auth, invoice_id, 110).get_json()['data']['payment']['id']
        client.post(f'/api/payments/{payment_id}/refund', json={'amount': 10, 'reason': 'Goodwill'},
                    headers=auth('accountant'))

        cancel = client.post(f'/api/invoices/{invoice_id}/cancel', headers=auth('admin'))
        assert cancel.status_code == 400
        assert client.delete(f'/api/invoices/{invoice_id}', headers=auth('admin')).status_code == 400

        data = client.get(f'/api/invoices/{invoice_id}', headers=auth('admin')).get_json()['data']
        assert data['status'] == 'partially-paid'
        assert data['amount_paid'] == 100.0

    def test_cancel_unpaid(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        response = client.post(f'/api/invoices/{invoice_id}/cancel', headers=auth('admin'))
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'cancelled'
        assert _pay(client, auth, invoice_id, 10).status_code == 400

    def test_delete_paid_rejected(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        _pay(client, auth, invoice_id, 110)
        assert client.delete(f'/api/invoices/{invoice_id}', headers=auth('admin')).status_code == 400

    def test_delete_unpaid_is_hard(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        response = client.delete(f'/api/invoices/{invoice_id}', headers=auth('admin'))
        assert response.status_code == 200
        assert response.get_json()['data']['hard_deleted'] is True
        assert client.get(f'/api/invoices/{invoice_id}', headers=auth('admin')).status_code == 404


class TestInvoiceQueries:

    def test_other_clinic_gets_404(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        assert client.get(f'/api/invoices/{invoice_id}', headers=auth('other_admin')).status_code == 404

    def test_get_includes_payments(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        _pay(client, auth, invoice_id, 10)
        data = client.get(f'/api/invoices/{invoice_id}', headers=auth('accountant')).get_json()['data']
        assert len(data['payments']) == 1

    def test_overdue_filter(self, app, client, auth, ids):
        overdue_id = _create(client, auth, ids).get_json()['data']['id']
        _create(client, auth, ids)
        with app.app_context():
            invoice = db.session.get(Invoice, overdue_id)
            invoice.invoice_date = date.today() - timedelta(days=40)
            invoice.due_date = date.today() - timedelta(days=10)
            db.session.commit()

        data = client.get('/api/invoices?overdue=true', headers=auth('accountant')).get_json()['data']
        assert [i['id'] for i in data['invoices']] == [overdue_id]
        assert data['invoices'][0]['is_overdue'] is True

    def test_invalid_status_filter(self, client, auth, ids):
        response = client.get('/api/invoices?status=bogus', headers=auth('accountant'))
        assert response.status_code == 400

    def test_stats(self, client, auth, ids):
        invoice_id = _create(client, auth, ids).get_json()['data']['id']
        _pay(client, auth, invoice_id, 60)
        stats = client.get('/api/invoices/stats', headers=auth('admin')).get_json()['data']
        assert stats['total_amount'] == 110.0
        assert stats['total_paid'] == 60.0
        assert stats['total_due'] == 50.0
