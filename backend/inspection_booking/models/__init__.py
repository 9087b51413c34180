from .tables import (
    ACTIVE_STATUSES,
    Appointments,
    Base,
    BlackoutDays,
    Centers,
    ServiceTypes,
    Slots,
    metadata,
    t_center_services,
)

__all__ = [
    "ACTIVE_STATUSES",
    "Appointments",
    "Base",
    "BlackoutDays",
    "Centers",
    "ServiceTypes",
    "Slots",
    "metadata",
    "t_center_services",
]
