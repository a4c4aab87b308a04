from enum import Enum


class Term(str, Enum):
    TERM1 = "TERM1"
    TERM2 = "TERM2"
    TERM3 = "TERM3"


TERM_ORDER = {Term.TERM1: 1, Term.TERM2: 2, Term.TERM3: 3}


class StudentFeeStatus(str, Enum):
    unpaid = "unpaid"
    partially_paid = "partially_paid"
    paid = "paid"


OUTSTANDING_STATUSES = (StudentFeeStatus.unpaid.value, StudentFeeStatus.partially_paid.value)


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    POS = "POS"
    ONLINE = "ONLINE"
    MPESA = "MPESA"


class MpesaTransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class MpesaReviewReason(str, Enum):
    NO_STUDENT = "NO_STUDENT"
    MULTIPLE_STUDENTS = "MULTIPLE_STUDENTS"
    NO_FEES = "NO_FEES"
    OTHER = "OTHER"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    PARENT = "PARENT"


class FeeStructureApplyScope(str, Enum):
    all = "all"
    term = "term"
