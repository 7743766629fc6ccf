from datetime import datetime, timedelta

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.models import Invoice, Payment
from clinic_api.models.payment import PAYMENT_METHODS, PAYMENT_STATUSES
from clinic_api.schemas import CreatePaymentSchema, UpdatePaymentSchema, RefundPaymentSchema
from clinic_api.services import billing_service
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    verify_clinic_access,
)
from clinic_api.utils.errors import BadRequestError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

payment_bp = Blueprint('payment', __name__, url_prefix='/api/payments')

BILLING = ('admin', 'receptionist', 'accountant')


def _parse_date(value, field):
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise BadRequestError('Invalid date format. Use YYYY-MM-DD', errors={field: 'Expected YYYY-MM-DD'})


def get_payment_or_404(payment_id):
    clinic_id, is_super = get_current_clinic_id()
    payment = Payment.query.filter_by(id=payment_id).first()
    return verify_clinic_access(payment, clinic_id, is_super, 'Payment')


def _filtered_query():
    query = filter_by_clinic(Payment.query, Payment)

    status = request.args.get('status', type=str)
    if status:
        if status not in PAYMENT_STATUSES:
            raise BadRequestError(f'Invalid status. Must be one of: {", ".join(PAYMENT_STATUSES)}')
        query = query.filter(Payment.status == status)
    method = request.args.get('payment_method', type=str)
    if method:
        if method not in PAYMENT_METHODS:
            raise BadRequestError(f'Invalid payment method. Must be one of: {", ".join(PAYMENT_METHODS)}')
        query = query.filter(Payment.payment_method == method)
    for arg in ('patient_id', 'invoice_id'):
        value = request.args.get(arg, type=int)
        if value:
            query = query.filter(getattr(Payment, arg) == value)
    if request.args.get('date_from'):
        query = query.filter(Payment.payment_date >= _parse_date(request.args['date_from'], 'date_from'))
    if request.args.get('date_to'):
        # Inclusive end date
        end = _parse_date(request.args['date_to'], 'date_to') + timedelta(days=1)
        query = query.filter(Payment.payment_date < end)
    return query


@payment_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*BILLING)
def list_payments():
    """
    List payments.
    Query params: status, payment_method, patient_id, invoice_id, date_from, date_to, page, limit
    """
    page, limit = get_pagination_args(request.args)
    query = _filtered_query()
    total = query.count()
    payments = query.order_by(Payment.payment_date.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        'Payments retrieved',
        data={'payments': [p.to_dict() for p in payments], 'pagination': pagination_meta(page, limit, total)},
    )


@payment_bp.route('/stats', methods=['GET'])
@jwt_required()
@require_role('admin', 'accountant')
def payment_stats():
    return success_response('Payment statistics', data=billing_service.payment_stats(_filtered_query()))


@payment_bp.route('/<int:payment_id>', methods=['GET'])
@jwt_required()
@require_role(*BILLING)
def get_payment(payment_id):
    payment = get_payment_or_404(payment_id)
    data = payment.to_dict()
    data['invoice'] = payment.invoice.summary() if payment.invoice else None
    return success_response('Payment retrieved', data=data)


@payment_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*BILLING)
def create_payment():
    """Same as POST /api/invoices/<id>/payment with the invoice in the body."""
    body = validate_body(CreatePaymentSchema)
    clinic_id, is_super = get_current_clinic_id()
    invoice = Invoice.query.filter_by(id=body.invoice_id).filter(Invoice.deleted_at.is_(None)).first()
    invoice = verify_clinic_access(invoice, clinic_id, is_super, 'Invoice')

    payment = billing_service.record_payment(
        invoice,
        amount=body.amount,
        payment_method=body.payment_method,
        transaction_id=body.transaction_id,
        notes=body.notes,
        received_by=get_current_user().id,
    )
    return success_response(
        'Payment recorded successfully',
        data={'payment': payment.to_dict(), 'invoice': payment.invoice.summary()},
    )


@payment_bp.route('/<int:payment_id>', methods=['PUT'])
@jwt_required()
@require_role('admin', 'accountant')
def update_payment(payment_id):
    """Method, transaction id and notes only; amounts change through refunds."""
    payment = get_payment_or_404(payment_id)
    body = validate_body(UpdatePaymentSchema)
    payment = billing_service.update_payment(payment, body.model_dump(exclude_unset=True), actor_id=get_current_user().id)
    return success_response('Payment updated successfully', data=payment.to_dict())


@payment_bp.route('/<int:payment_id>/refund', methods=['POST'])
@jwt_required()
@require_role('admin', 'accountant')
def refund_payment(payment_id):
    """
    Refund a payment.
    Body: { amount? (defaults to the full payment), reason, notes? }
    """
    payment = get_payment_or_404(payment_id)
    body = validate_body(RefundPaymentSchema)

    payment = billing_service.refund_payment(
        payment,
        amount=body.amount,
        reason=body.reason,
        refunded_by=get_current_user().id,
        notes=body.notes,
    )
    return success_response(
        'Payment refunded successfully',
        data={'payment': payment.to_dict(), 'invoice': payment.invoice.summary()},
    )
