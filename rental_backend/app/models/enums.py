"""
User roles enumeration.

Defines the role types of the rental back office and its customers.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        SUPER_ADMIN / ADMIN: Highest privilege, may force settlement overrides
        STAFF_*: Back-office staff acting on bookings
        AGENT: Travel agent with its own saldo
        DRIVER_*: Drivers renting vehicles
        CUSTOMER: Public customer
    """
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    STAFF_ADMIN = "Staff Admin"
    STAFF_TRAFFIC = "Staff Traffic"
    STAFF_TRIPS = "Staff Trips"
    STAFF = "Staff"
    DISPATCHER = "Dispatcher"
    AGENT = "Agent"
    DRIVER_PERUSAHAAN = "Driver Perusahaan"
    DRIVER_MITRA = "Driver Mitra"
    CUSTOMER = "Customer"


# Roles allowed to override finish_enabled, force-complete and edit reconciled backdates
PRIVILEGED_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})

# Roles allowed to act on bookings at all
BACK_OFFICE_ROLES = frozenset({
    UserRole.SUPER_ADMIN,
    UserRole.ADMIN,
    UserRole.STAFF_ADMIN,
    UserRole.STAFF_TRAFFIC,
    UserRole.STAFF_TRIPS,
    UserRole.STAFF,
})

# Roles allowed to verify or reject saldo top-up requests
TOPUP_VERIFIER_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.STAFF_ADMIN})
