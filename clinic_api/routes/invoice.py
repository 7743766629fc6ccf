from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.models import Invoice
from clinic_api.models.invoice import INVOICE_STATUSES
from clinic_api.schemas import CreateInvoiceSchema, UpdateInvoiceSchema, RecordPaymentSchema
from clinic_api.services import billing_service
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    resolve_clinic_id,
    verify_clinic_access,
)
from clinic_api.utils.errors import BadRequestError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

invoice_bp = Blueprint('invoice', __name__, url_prefix='/api/invoices')

BILLING = ('admin', 'receptionist', 'accountant')


def get_invoice_or_404(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id).filter(Invoice.deleted_at.is_(None)).first()
    clinic_id, is_super = get_current_clinic_id()
    return verify_clinic_access(invoice, clinic_id, is_super, 'Invoice')


def _base_query():
    return filter_by_clinic(Invoice.query.filter(Invoice.deleted_at.is_(None)), Invoice)


@invoice_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*BILLING)
def list_invoices():
    """
    List invoices.
    Query params: status, patient_id, overdue=true, page, limit
    """
    page, limit = get_pagination_args(request.args)
    query = _base_query()

    status = request.args.get('status', type=str)
    if status:
        if status not in INVOICE_STATUSES:
            raise BadRequestError(f'Invalid status. Must be one of: {", ".join(INVOICE_STATUSES)}')
        query = query.filter(Invoice.status == status)
    patient_id = request.args.get('patient_id', type=int)
    if patient_id:
        query = query.filter(Invoice.patient_id == patient_id)
    if request.args.get('overdue') == 'true':
        query = billing_service.overdue_filter(query)

    total = query.count()
    invoices = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        'Invoices retrieved',
        data={'invoices': [i.to_dict() for i in invoices], 'pagination': pagination_meta(page, limit, total)},
    )


@invoice_bp.route('/stats', methods=['GET'])
@jwt_required()
@require_role('admin', 'accountant')
def invoice_stats():
    return success_response('Invoice statistics', data=billing_service.invoice_stats(_base_query()))


@invoice_bp.route('/<int:invoice_id>', methods=['GET'])
@jwt_required()
@require_role(*BILLING)
def get_invoice(invoice_id):
    invoice = get_invoice_or_404(invoice_id)
    data = invoice.to_dict()
    data['payments'] = [p.to_dict() for p in invoice.payments.all()]
    return success_response('Invoice retrieved', data=data)


@invoice_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*BILLING)
def create_invoice():
    body = validate_body(CreateInvoiceSchema)
    clinic_id = resolve_clinic_id(body.clinic_id)

    invoice = billing_service.create_invoice(
        clinic_id=clinic_id,
        patient_id=body.patient_id,
        items=[item.model_dump() for item in body.items],
        discount=body.discount,
        tax=body.tax,
        invoice_date=body.invoice_date,
        due_date=body.due_date,
        appointment_id=body.appointment_id,
        medical_record_id=body.medical_record_id,
        notes=body.notes,
        insurance_claim_number=body.insurance_claim_number,
        issued_by=get_current_user().id,
    )
    return success_response('Invoice created successfully', data=invoice.to_dict(), status_code=201)


@invoice_bp.route('/<int:invoice_id>', methods=['PUT'])
@jwt_required()
@require_role(*BILLING)
def update_invoice(invoice_id):
    invoice = get_invoice_or_404(invoice_id)
    body = validate_body(UpdateInvoiceSchema)

    changes = body.model_dump(exclude_unset=True)
    if changes.get('due_date') and changes['due_date'] < invoice.invoice_date:
        raise BadRequestError('Due date cannot be before invoice date', errors={'due_date': 'Before invoice date'})

    invoice = billing_service.update_invoice(invoice, changes, actor_id=get_current_user().id)
    return success_response('Invoice updated successfully', data=invoice.to_dict())


@invoice_bp.route('/<int:invoice_id>/cancel', methods=['POST'])
@jwt_required()
@require_role('admin', 'accountant')
def cancel_invoice(invoice_id):
    invoice = get_invoice_or_404(invoice_id)
    data = request.get_json(silent=True) or {}
    invoice = billing_service.cancel_invoice(invoice, actor_id=get_current_user().id, reason=data.get('reason'))
    return success_response('Invoice cancelled successfully', data=invoice.to_dict())


@invoice_bp.route('/<int:invoice_id>', methods=['DELETE'])
@jwt_required()
@require_role('admin', 'accountant')
def delete_invoice(invoice_id):
    invoice = get_invoice_or_404(invoice_id)
    hard = billing_service.delete_invoice(invoice, actor_id=get_current_user().id)
    return success_response('Invoice deleted successfully', data={'id': invoice_id, 'hard_deleted': hard})


@invoice_bp.route('/<int:invoice_id>/payment', methods=['POST'])
@jwt_required()
@require_role(*BILLING)
def record_payment(invoice_id):
    """
    Record a payment against this invoice.
    Body: { amount, paymentMethod, transactionId?, notes? }
    """
    invoice = get_invoice_or_404(invoice_id)
    body = validate_body(RecordPaymentSchema)

    payment = billing_service.record_payment(
        invoice,
        amount=body.amount,
        payment_method=body.payment_method,
        transaction_id=body.transaction_id,
        notes=body.notes,
        received_by=get_current_user().id,
    )
    invoice = payment.invoice
    return success_response(
        'Payment recorded successfully',
        data={'payment': payment.to_dict(), 'invoice': invoice.summary()},
    )
