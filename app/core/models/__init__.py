from app.core.models.guardian import Guardian
from app.core.models.student import Student
from app.core.models.phone_alias import StudentPhoneAlias
from app.core.models.fee_category import FeeCategory
from app.core.models.class_fee_structure import ClassFeeStructure
from app.core.models.student_fee import StudentFee
from app.core.models.payment import Payment
from app.core.models.mpesa_transaction import MpesaTransaction
from app.core.models.school_settings import SchoolSettings
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "ClassFeeStructure",
    "FeeAuditLog",
    "FeeCategory",
    "Guardian",
    "MpesaTransaction",
    "Payment",
    "SchoolSettings",
    "Student",
    "StudentFee",
    "StudentPhoneAlias",
]
