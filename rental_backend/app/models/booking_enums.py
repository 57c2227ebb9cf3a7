"""
Booking and settlement enumerations.
"""

import enum


class BookingStatus(str, enum.Enum):
    """Booking status enumeration."""
    PENDING = "pending"  # Created by the customer/agent flow
    CONFIRMED = "confirmed"  # Confirmed by back office, vehicle reserved
    ONGOING = "ongoing"  # Rental period running (promoted by the schedule job)
    COMPLETED = "completed"  # Vehicle returned, settled
    CANCELLED = "cancelled"  # Cancelled with reason, paid amount refunded


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class PaymentStatus(str, enum.Enum):
    """Booking payment status enumeration."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"  # Paid amount credited back on cancel


class VehicleAvailability(str, enum.Enum):
    """Vehicle availability enumeration."""
    AVAILABLE = "available"
    RENTED = "rented"


class AccountType(str, enum.Enum):
    """Owner of a saldo account."""
    DRIVER = "driver"
    AGENT = "agent"


class LedgerReason(str, enum.Enum):
    """Reason tag of a ledger adjustment."""
    LATE_FEE = "late_fee"  # Debit on finish
    REFUND = "refund"  # Credit on cancel
    MANUAL = "manual"  # Admin top-up or correction
    TOPUP = "topup"  # Verified top-up request


class SettlementStep(str, enum.Enum):
    """Side effects performed after a booking status write."""
    VEHICLE_RENT = "vehicle_rent"
    VEHICLE_RELEASE = "vehicle_release"
    LEDGER_LATE_FEE = "ledger_late_fee"
    LEDGER_REFUND = "ledger_refund"


class SettlementFailureStatus(str, enum.Enum):
    FAILED = "failed"
    RESOLVED = "resolved"


class TopUpStatus(str, enum.Enum):
    """Top-up request status enumeration."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
