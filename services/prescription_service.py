import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.database import require_supabase
from core.exceptions import BusinessError, ErrorCode, InvalidTransitionError
from models import PrescriptionStatus, UserRole
from services.workflow_engine import can_transition, is_editable

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PrescriptionService:
    @staticmethod
    def _get_db():
        return require_supabase()

    @staticmethod
    def generate_prescription_no() -> str:
        date_part = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"RX{date_part}{uuid.uuid4().hex[:8].upper()}"

    # Loading and guards

    @classmethod
    def get_prescription(cls, prescription_id: int) -> Dict[str, Any]:
        supabase = cls._get_db()
        result = supabase.table("prescriptions").select("*").eq("id", prescription_id).execute()
        if not result.data:
            raise BusinessError(ErrorCode.PRESCRIPTION_NOT_FOUND)
        return result.data[0]

    @staticmethod
    def current_status(prescription: Dict[str, Any]) -> PrescriptionStatus:
        status = PrescriptionStatus.from_code(prescription.get("status"))
        if status is None:
            raise BusinessError(
                ErrorCode.PRESCRIPTION_STATUS_INVALID,
                f"Unknown prescription status: {prescription.get('status')}",
            )
        return status

    @staticmethod
    def _check_prescriber(prescription: Dict[str, Any], current_user: Dict[str, Any]):
        if prescription.get("doctor_id") != current_user["id"] and current_user["role"] != UserRole.ADMIN:
            raise BusinessError(ErrorCode.PRESCRIPTION_NOT_BELONG)

    @staticmethod
    def check_read_access(prescription: Dict[str, Any], current_user: Dict[str, Any]):
        """Patients and doctors see their own prescriptions; pharmacists and admins see all"""
        role = current_user["role"]
        if role in (UserRole.PHARMACIST, UserRole.ADMIN):
            return
        owner_column = "doctor_id" if role.is_doctor else "patient_id"
        if prescription.get(owner_column) != current_user["id"]:
            raise BusinessError(ErrorCode.FORBIDDEN, "Not allowed to view this prescription")

    @classmethod
    def _load_editable(cls, prescription_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        prescription = cls.get_prescription(prescription_id)
        cls._check_prescriber(prescription, current_user)
        status = cls.current_status(prescription)
        if not is_editable(status):
            raise BusinessError(
                ErrorCode.PRESCRIPTION_STATUS_INVALID,
                f"Prescription cannot be modified while {status.value}",
            )
        return prescription

    @classmethod
    def _transition(
        cls,
        prescription: Dict[str, Any],
        target: PrescriptionStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        current = cls.current_status(prescription)
        if not can_transition(current, target):
            raise InvalidTransitionError(ErrorCode.PRESCRIPTION_STATUS_INVALID, current, target)

        now = _now_iso()
        update_data = {"status": target.value, "status_updated_at": now, "updated_at": now}
        if extra:
            update_data.update(extra)

        # Only writes if the stored status is still the one checked above
        supabase = cls._get_db()
        res = supabase.table("prescriptions").update(update_data).eq(
            "id", prescription["id"]
        ).eq("status", current.value).execute()
        if not res.data:
            logger.warning(
                f"Prescription {prescription.get('prescription_no')} left {current.value} "
                f"before {target.value} was written"
            )
            raise InvalidTransitionError(ErrorCode.PRESCRIPTION_STATUS_INVALID, current, target)

        logger.info(
            f"Prescription {prescription.get('prescription_no')} status: {current.value} -> {target.value}"
        )
        return res.data[0]

    # Doctor side

    @classmethod
    def create_prescription(
        cls,
        consultation_id: int,
        current_user: Dict[str, Any],
        diagnosis: Optional[str] = None,
    ) -> Dict[str, Any]:
        supabase = cls._get_db()

        consultation_result = supabase.table("consultations").select("*").eq("id", consultation_id).execute()
        if not consultation_result.data:
            raise BusinessError(ErrorCode.CONSULT_NOT_FOUND)
        consultation = consultation_result.data[0]
        if consultation.get("doctor_id") != current_user["id"]:
            raise BusinessError(ErrorCode.CONSULT_NOT_BELONG, "Only the assigned doctor can prescribe")

        now = _now_iso()
        record = {
            "prescription_no": cls.generate_prescription_no(),
            "consultation_id": consultation_id,
            "patient_id": consultation["patient_id"],
            "doctor_id": current_user["id"],
            "status": PrescriptionStatus.DRAFT.value,
            "diagnosis": diagnosis,
            "created_at": now,
            "updated_at": now,
        }
        result = supabase.table("prescriptions").insert(record).execute()
        if not result.data:
            raise BusinessError(ErrorCode.INTERNAL_ERROR, "Failed to create prescription")

        prescription = result.data[0]
        logger.info(f"Prescription created: prescription_no={prescription['prescription_no']}, consultation_id={consultation_id}")
        return prescription

    @classmethod
    def create_with_items(cls, prescription_data: Dict[str, Any], current_user: Dict[str, Any]) -> Dict[str, Any]:
        """Create a draft with its items; a draft that has items goes straight to review"""
        diagnosis = prescription_data.get("diagnosis") or []
        prescription = cls.create_prescription(
            prescription_data["consultation_id"],
            current_user,
            "; ".join(diagnosis) if diagnosis else None,
        )

        items = prescription_data.get("items") or []
        try:
            for item in items:
                cls._insert_item(prescription["id"], item)
        except Exception:
            cls._discard(prescription)
            raise

        if items:
            prescription = cls._transition(
                prescription, PrescriptionStatus.PENDING_REVIEW, {"submitted_at": _now_iso()}
            )
        return prescription

    @classmethod
    def _discard(cls, prescription: Dict[str, Any]):
        """Remove a half-created prescription and whatever items made it in"""
        supabase = cls._get_db()
        supabase.table("prescription_items").delete().eq("prescription_id", prescription["id"]).execute()
        supabase.table("prescriptions").delete().eq("id", prescription["id"]).execute()
        logger.warning(f"Discarded incomplete prescription {prescription.get('prescription_no')}")

    @classmethod
    def update_prescription(cls, prescription_id: int, updates: Dict[str, Any], current_user: Dict[str, Any]) -> Dict[str, Any]:
        prescription = cls._load_editable(prescription_id, current_user)

        update_data = {k: v for k, v in updates.items() if k in ("diagnosis", "notes") and v is not None}
        if not update_data:
            return prescription
        update_data["updated_at"] = _now_iso()

        supabase = cls._get_db()
        res = supabase.table("prescriptions").update(update_data).eq(
            "id", prescription_id
        ).eq("status", prescription["status"]).execute()
        if not res.data:
            raise BusinessError(
                ErrorCode.PRESCRIPTION_STATUS_INVALID,
                "Prescription changed status while being edited",
            )
        return res.data[0]

    @classmethod
    def _insert_item(cls, prescription_id: int, item: Dict[str, Any]) -> Dict[str, Any]:
        supabase = cls._get_db()
        record = {
            "prescription_id": prescription_id,
            "drug_name": item["drug_name"],
            "drug_spec": item.get("spec"),
            "dosage": item["usage"],
            "quantity": item["quantity"],
            "unit": item.get("unit"),
            "notes": item.get("remark"),
            "created_at": _now_iso(),
        }
        result = supabase.table("prescription_items").insert(record).execute()
        if not result.data:
            raise BusinessError(ErrorCode.INTERNAL_ERROR, "Failed to add prescription item")
        return result.data[0]

    @classmethod
    def add_item(cls, prescription_id: int, item: Dict[str, Any], current_user: Dict[str, Any]) -> Dict[str, Any]:
        cls._load_editable(prescription_id, current_user)
        return cls._insert_item(prescription_id, item)

    @classmethod
    def delete_item(cls, prescription_id: int, item_id: int, current_user: Dict[str, Any]) -> None:
        cls._load_editable(prescription_id, current_user)
        supabase = cls._get_db()
        supabase.table("prescription_items").delete().eq("id", item_id).eq("prescription_id", prescription_id).execute()

    @classmethod
    def list_items(cls, prescription_id: int) -> List[Dict[str, Any]]:
        supabase = cls._get_db()
        result = supabase.table("prescription_items").select("*").eq("prescription_id", prescription_id).order("id").execute()
        return result.data if result.data else []

    @classmethod
    def submit_for_review(cls, prescription_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        prescription = cls.get_prescription(prescription_id)
        cls._check_prescriber(prescription, current_user)

        current = cls.current_status(prescription)
        if not can_transition(current, PrescriptionStatus.PENDING_REVIEW):
            raise InvalidTransitionError(ErrorCode.PRESCRIPTION_STATUS_INVALID, current, PrescriptionStatus.PENDING_REVIEW)

        if not cls.list_items(prescription_id):
            raise BusinessError(ErrorCode.PARAM_ERROR, "Prescription has no items")

        return cls._transition(prescription, PrescriptionStatus.PENDING_REVIEW, {"submitted_at": _now_iso()})

    @classmethod
    def revise(cls, prescription_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        """Reopen a rejected prescription as a draft"""
        prescription = cls.get_prescription(prescription_id)
        cls._check_prescriber(prescription, current_user)
        return cls._transition(prescription, PrescriptionStatus.DRAFT)

    # Pharmacist side

    @classmethod
    def _record_review(
        cls,
        prescription: Dict[str, Any],
        current_user: Dict[str, Any],
        result: PrescriptionStatus,
        risk_level: Optional[str] = None,
        suggestion: Optional[str] = None,
        reject_reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """One review row per decision, so earlier rejections stay on file"""
        supabase = cls._get_db()
        now = _now_iso()
        record = {
            "prescription_id": prescription["id"],
            "pharmacist_id": current_user["id"],
            "result": result.value,
            "risk_level": risk_level,
            "suggestion": suggestion,
            "reject_reason": reject_reason,
            "reviewed_at": now,
            "created_at": now,
        }
        res = supabase.table("pharmacy_reviews").insert(record).execute()
        if not res.data:
            raise BusinessError(ErrorCode.INTERNAL_ERROR, "Failed to record pharmacy review")
        return res.data[0]

    @classmethod
    def approve(
        cls,
        prescription_id: int,
        current_user: Dict[str, Any],
        risk_level: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> Dict[str, Any]:
        prescription = cls.get_prescription(prescription_id)
        approved = cls._transition(
            prescription,
            PrescriptionStatus.APPROVED,
            {"approved_at": _now_iso(), "reviewer_id": current_user["id"]},
        )
        cls._record_review(
            prescription, current_user, PrescriptionStatus.APPROVED,
            risk_level=risk_level, suggestion=suggestion,
        )
        logger.info(f"Prescription {prescription_id} approved by pharmacist {current_user['id']}")
        return approved

    @classmethod
    def reject(
        cls,
        prescription_id: int,
        reason: str,
        current_user: Dict[str, Any],
        risk_level: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> Dict[str, Any]:
        prescription = cls.get_prescription(prescription_id)
        rejected = cls._transition(
            prescription,
            PrescriptionStatus.REJECTED,
            {"notes": reason, "reviewer_id": current_user["id"]},
        )
        cls._record_review(
            prescription, current_user, PrescriptionStatus.REJECTED,
            risk_level=risk_level, suggestion=suggestion, reject_reason=reason,
        )
        logger.info(f"Prescription {prescription_id} rejected by pharmacist {current_user['id']}: {reason}")
        return rejected

    @classmethod
    def dispense(cls, prescription_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        prescription = cls.get_prescription(prescription_id)
        dispensed = cls._transition(prescription, PrescriptionStatus.DISPENSED)
        logger.info(f"Prescription {prescription_id} dispensed by pharmacist {current_user['id']}")
        return dispensed

    # Queries

    @classmethod
    def get_by_consultation(cls, consultation_id: int) -> Optional[Dict[str, Any]]:
        supabase = cls._get_db()
        result = supabase.table("prescriptions").select("*").eq("consultation_id", consultation_id).limit(1).execute()
        return result.data[0] if result.data else None

    @classmethod
    def list_pending_review(cls) -> List[Dict[str, Any]]:
        supabase = cls._get_db()
        result = supabase.table("prescriptions").select("*").eq(
            "status", PrescriptionStatus.PENDING_REVIEW.value
        ).order("submitted_at").execute()
        return result.data if result.data else []

    @classmethod
    def list_by_patient(cls, patient_id: int) -> List[Dict[str, Any]]:
        supabase = cls._get_db()
        result = supabase.table("prescriptions").select("*").eq("patient_id", patient_id).order("created_at", desc=True).execute()
        return result.data if result.data else []

    @classmethod
    def list_reviews(cls, prescription_id: int) -> List[Dict[str, Any]]:
        """Review history of one prescription, newest first"""
        supabase = cls._get_db()
        result = supabase.table("pharmacy_reviews").select("*").eq(
            "prescription_id", prescription_id
        ).order("reviewed_at", desc=True).order("id", desc=True).execute()
        return result.data if result.data else []

    @classmethod
    def latest_review(cls, prescription_id: int) -> Optional[Dict[str, Any]]:
        reviews = cls.list_reviews(prescription_id)
        return reviews[0] if reviews else None

    @classmethod
    def list_reviews_by_pharmacist(cls, pharmacist_id: int) -> List[Dict[str, Any]]:
        supabase = cls._get_db()
        result = supabase.table("pharmacy_reviews").select("*").eq(
            "pharmacist_id", pharmacist_id
        ).order("reviewed_at", desc=True).order("id", desc=True).execute()
        return result.data if result.data else []
