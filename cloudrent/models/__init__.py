from .account import Account
from .ledger import LedgerEntry
from .catalog import ServiceTemplate
from .resource import (
    Resource,
    STATUS_PROVISIONING,
    STATUS_ONLINE,
    STATUS_STOPPED,
    STATUS_ERROR,
)
from .domain import IngressBinding
from .snapshot import Snapshot, Backup
