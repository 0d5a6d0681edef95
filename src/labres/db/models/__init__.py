from labres.db.models.base import ORMBase
from labres.db.models.service import Service, Machine
from labres.db.models.reservation import Reservation, UtilTime
from labres.db.models.blocked_date import BlockedDate
from labres.db.models.utilization import MachineUtilization, DownTime


__all__ = (
    'ORMBase',
    'Service',
    'Machine',
    'Reservation',
    'UtilTime',
    'BlockedDate',
    'MachineUtilization',
    'DownTime',
)
