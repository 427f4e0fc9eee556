from .generated import (
    Base,
    Bookings,
    Customers,
    Services,
    Staff,
    StaffIntegrations,
    StaffWorkingHours,
    t_staff_services,
)

__all__ = [
    "Base",
    "Bookings",
    "Customers",
    "Services",
    "Staff",
    "StaffIntegrations",
    "StaffWorkingHours",
    "t_staff_services",
]
