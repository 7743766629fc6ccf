"""
Prescription routes.
"""
import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import Appointment, Prescription
from clinic_api.routes.patient import get_patient_or_404
from clinic_api.schemas import CreatePrescriptionSchema, UpdatePrescriptionSchema
from clinic_api.services.notification_service import notify
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    verify_clinic_access,
)
from clinic_api.utils.errors import ForbiddenError, NotFoundError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

logger = logging.getLogger(__name__)

prescription_bp = Blueprint("prescription", __name__, url_prefix="/api/prescriptions")


def get_prescription_or_404(prescription_id):
    clinic_id, is_super = get_current_clinic_id()
    prescription = db.session.get(Prescription, prescription_id)
    return verify_clinic_access(prescription, clinic_id, is_super, "Prescription")


def _ensure_author(prescription, user):
    """Only the prescribing doctor (or a clinic admin) changes a prescription."""
    if user.is_super_admin or user.role == "admin":
        return
    if prescription.doctor_id != user.id:
        raise ForbiddenError("Only the prescribing doctor can change this prescription")


@prescription_bp.route("", methods=["GET"])
@jwt_required()
def list_prescriptions():
    """
    List prescriptions.
    Query params: patient_id, status, page, limit
    """
    page, limit = get_pagination_args(request.args)
    query = filter_by_clinic(Prescription.query, Prescription)

    patient_id = request.args.get("patient_id", type=int)
    if patient_id:
        query = query.filter(Prescription.patient_id == patient_id)
    status = request.args.get("status", type=str)
    if status:
        query = query.filter(Prescription.status == status)

    total = query.count()
    prescriptions = query.order_by(Prescription.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        "Prescriptions retrieved",
        data={"prescriptions": [p.to_dict() for p in prescriptions], "pagination": pagination_meta(page, limit, total)},
    )


@prescription_bp.route("", methods=["POST"])
@jwt_required()
@require_role("doctor")
def create_prescription():
    """
    Create a prescription for a patient of the doctor's clinic.

    Body:
        patientId: Patient ID (required)
        appointmentId: Appointment ID (optional)
        items: [{medicine, dosage, frequency?, durationDays, instructions?}] (required)
        diagnosis, notes: optional
    """
    body = validate_body(CreatePrescriptionSchema)
    doctor = get_current_user()
    patient = get_patient_or_404(body.patient_id)

    if body.appointment_id is not None:
        appointment = Appointment.query.filter_by(id=body.appointment_id, patient_id=patient.id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")

    prescription = Prescription(
        clinic_id=patient.clinic_id,
        patient_id=patient.id,
        appointment_id=body.appointment_id,
        doctor_id=doctor.id,
        items=[item.model_dump() for item in body.items],
        diagnosis=body.diagnosis,
        notes=body.notes,
        status="active",
    )
    db.session.add(prescription)
    db.session.flush()
    log_audit("prescription", "create", user_id=doctor.id, entity_id=prescription.id,
              details={"patient_id": patient.id, "items": len(body.items)},
              clinic_id=patient.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Prescription {prescription.id} created by doctor {doctor.id} for patient {patient.id}")
    return success_response("Prescription created successfully", data=prescription.to_dict(), status_code=201)


@prescription_bp.route("/<int:prescription_id>", methods=["GET"])
@jwt_required()
def get_prescription(prescription_id):
    prescription = get_prescription_or_404(prescription_id)
    data = prescription.to_dict()
    data["patient"] = prescription.patient.to_summary() if prescription.patient else None
    return success_response("Prescription retrieved", data=data)


@prescription_bp.route("/<int:prescription_id>", methods=["PUT"])
@jwt_required()
@require_role("admin", "doctor")
def update_prescription(prescription_id):
    prescription = get_prescription_or_404(prescription_id)
    user = get_current_user()
    _ensure_author(prescription, user)
    body = validate_body(UpdatePrescriptionSchema)

    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    for field, value in changes.items():
        setattr(prescription, field, value)

    log_audit("prescription", "update", user_id=user.id, entity_id=prescription.id,
              details=changes, clinic_id=prescription.clinic_id, commit=False)
    db.session.commit()

    if changes.get("status") == "completed":
        notify(
            prescription.doctor_id,
            "prescription-ready",
            "Prescription completed",
            f"Prescription {prescription.id} for {prescription.patient.full_name} is completed",
            clinic_id=prescription.clinic_id,
            priority="low",
            related_model="Prescription",
            related_id=prescription.id,
        )
    return success_response("Prescription updated successfully", data=prescription.to_dict())


@prescription_bp.route("/<int:prescription_id>", methods=["DELETE"])
@jwt_required()
@require_role("admin", "doctor")
def delete_prescription(prescription_id):
    prescription = get_prescription_or_404(prescription_id)
    user = get_current_user()
    _ensure_author(prescription, user)

    log_audit("prescription", "delete", user_id=user.id, entity_id=prescription.id,
              details={"patient_id": prescription.patient_id}, clinic_id=prescription.clinic_id, commit=False)
    db.session.delete(prescription)
    db.session.commit()
    return success_response(f"Prescription {prescription_id} deleted successfully")
