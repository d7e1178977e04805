"""Data models for forum event extraction."""
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Dict, List, Optional


NO_ID = -1
NO_SIZE = -1
CREATOR_UNKNOWN = "UNKNOWN"
MAP_UNKNOWN = "Unknown"


class EventCategory(Enum):
    """Kind of event a thread announces."""
    COOP = "COOP"
    COOP_PLUS = "COOP_PLUS"
    TVT = "TVT"
    BLACKBOX = "BLACKBOX"
    ORGA = "ORGA"
    MILSIM = "MILSIM"
    COMPETITION = "COMPETITION"
    UNKNOWN = "UNKNOWN"
    NO_TYPE = "UNKNOWN"


class RoleCategory(Enum):
    """Closed set of battlefield roles a slot can be classified into.

    The value is the canonical text of the role as it appears in slot lists.
    """
    CO = "CO"
    XO = "XO"
    COL = "COL"
    JTAC = "JTAC"
    MIO = "MIO"
    FO = "FO"
    PL = "PL"
    PSG = "PSG"
    TC = "TC"
    GNR = "GNR"
    DRV = "DRV"
    TL = "TL"
    SL = "SL"
    FTL = "FTL"
    AR = "AR"
    RFL = "RFL"
    GRE = "GRE"
    DM = "DM"
    CMDC = "CMDC"
    ATR = "ATR"
    AAR = "AAR"
    MG = "MG"
    AMG = "AMG"
    AT = "AT"
    AAT = "AAT"
    AA = "AA"
    AAA = "AAA"
    CE = "CE"
    SNP = "SNP"
    SPT = "SPT"
    LOG = "LOG"
    PIL = "PIL"
    CPIL = "CPIL"
    WCO = "WCO"
    WSO = "WSO"
    UASO = "UASO"
    UGSO = "UGSO"
    MDC = "MDC"
    ACSO = "ACSO"
    SPEC = "SPEC"
    ZC_PLUS = "ZC+"
    OTHER = "OTHER"
    UNKNOWN = "NO_TYPE"
    NO_TYPE = "NO_TYPE"


class AttendanceStatus(Enum):
    """Whether a player showed up, according to external data."""
    UNKNOWN = "UNKNOWN"
    APPEARED = "APPEARED"
    NOT_APPEARED = "NOT_APPEARED"
    EXCUSED = "EXCUSED"


class DiagnosticKind(Enum):
    """Classes of reportable problems found while extracting a thread."""
    UNPARSEABLE_FIELD = "UNPARSEABLE_FIELD"
    CLASSIFICATION_MISS = "CLASSIFICATION_MISS"
    RECONCILIATION_CONFLICT = "RECONCILIATION_CONFLICT"
    STRUCTURAL_ANOMALY = "STRUCTURAL_ANOMALY"


@dataclass(frozen=True)
class Diagnostic:
    """A reportable problem. Never fatal."""
    kind: DiagnosticKind
    message: str
    field: Optional[str] = None


@dataclass
class SlotAssignment:
    """One role assignment of a roster."""
    slot_key: int
    role: RoleCategory
    raw_role_label: str
    player: str
    status: AttendanceStatus = AttendanceStatus.UNKNOWN
    unconfirmed: bool = False


@dataclass
class ReserveEntry:
    """Player known from external data but without a slot in the thread."""
    player: str
    status: AttendanceStatus


@dataclass
class Roster:
    """Ordered slot assignments of an event plus its reserve.

    Slot keys are not unique; duplicates in the source are kept as they are.
    """
    slots: List[SlotAssignment] = field(default_factory=list)
    reserve: List[ReserveEntry] = field(default_factory=list)

    def add_slot(self, slot: SlotAssignment) -> None:
        self.slots.append(slot)

    def add_reserve(self, player: str, status: AttendanceStatus) -> None:
        self.reserve.append(ReserveEntry(player=player, status=status))

    def slot_size(self) -> int:
        return len(self.slots)

    def players(self) -> List[str]:
        return [slot.player for slot in self.slots]


@dataclass
class EventRecord:
    """Structured event extracted from one forum thread."""
    name: str
    category: EventCategory
    capacity: int
    creator: str
    map: str
    date: Optional[date]
    start_time: Optional[time]
    thread_id: int
    post_id: int
    roster: Optional[Roster]


@dataclass(frozen=True)
class ExternalAttendance:
    """Attendance of one event as recorded outside the forum.

    Treated as read-only; consumers copy ``player_status`` before changing it.
    """
    category: EventCategory
    player_status: Dict[str, AttendanceStatus]

    def get_player_status(self, player: str) -> Optional[AttendanceStatus]:
        return self.player_status.get(player)


@dataclass
class ExtractionResult:
    """Outcome of extracting a single thread."""
    record: Optional[EventRecord]
    diagnostics: List[Diagnostic] = field(default_factory=list)
    skipped: bool = False


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int
    updated: int
    deleted: int
    errors: list[str]
