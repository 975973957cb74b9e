"""
Data Manager for Shift Planning System

Handles all file I/O operations, JSON persistence, and CRUD operations
for workers, machines, departments, shifts and notifications.
"""

import copy
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, date, time, timedelta, timezone
from typing import Dict, List, Optional, Any, Iterable, Tuple, Union
from dataclasses import dataclass, field, replace
from pathlib import Path


APP_VERSION = "1.0.0"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"
SECTIONS = ("workers", "machines", "departments", "shifts", "notifications")


class DataManagerError(Exception):
    """Base exception for DataManager operations"""
    pass


class DataFileCorruptedError(DataManagerError):
    """Raised when the data file is corrupted"""
    pass


class DataFileNotFoundError(DataManagerError):
    """Raised when the data file is not found"""
    pass


class DataSaveError(DataManagerError):
    """Raised when saving data fails"""
    pass


class DataValidationError(DataManagerError):
    """Raised when data validation fails"""
    pass


class NotFoundError(DataManagerError):
    """Raised when a referenced entity id does not resolve"""
    pass


class InvalidStateError(DataManagerError):
    """Raised when an operation does not apply to the entity's current state"""
    pass


def new_id(prefix: str) -> str:
    """Opaque id prefixed by the entity letter"""
    return f"{prefix}{uuid.uuid4()}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise DataValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_time(value: str) -> time:
    try:
        return datetime.strptime(value, TIME_FORMAT).time()
    except (TypeError, ValueError):
        raise DataValidationError(f"Invalid time '{value}', expected HH:MM")


def shift_interval(date_str: str, start_time: str, end_time: str) -> Tuple[datetime, datetime]:
    """Half-open [start, end) interval of a same-day shift.

    Raises DataValidationError for malformed values or when the end is not
    after the start (shifts crossing midnight are not supported).
    """
    day = parse_date(date_str)
    start = datetime.combine(day, parse_time(start_time))
    end = datetime.combine(day, parse_time(end_time))
    if start >= end:
        raise DataValidationError(
            f"Shift end time {end_time} must be after start time {start_time}"
        )
    return start, end


def week_start_for(day: date) -> date:
    """Monday of the week containing day"""
    return day - timedelta(days=day.weekday())


@dataclass
class Worker:
    id: str
    name: str
    avatar_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "avatarUrl": self.avatar_url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Worker':
        return cls(id=data["id"], name=data.get("name", ""), avatar_url=data.get("avatarUrl", ""))


@dataclass
class Machine:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Machine':
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass
class Department:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Department':
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass(frozen=True)
class IdleSwap:
    """No swap outstanding"""


@dataclass(frozen=True)
class PendingSwap:
    """Swap proposed to target_worker_id, waiting for a response"""
    target_worker_id: str


SwapState = Union[IdleSwap, PendingSwap]
IDLE = IdleSwap()


@dataclass
class Shift:
    """A scheduled work assignment for one worker on one date"""
    id: str
    worker_id: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    department_id: Optional[str] = None
    machine_id: Optional[str] = None
    notes: Optional[str] = None
    swap_state: SwapState = IDLE

    @property
    def has_pending_swap(self) -> bool:
        return isinstance(self.swap_state, PendingSwap)

    def interval(self) -> Tuple[datetime, datetime]:
        return shift_interval(self.date, self.start_time, self.end_time)

    def duration_hours(self) -> float:
        start, end = self.interval()
        return (end - start).total_seconds() / 3600

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "workerId": self.worker_id,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "departmentId": self.department_id,
        }
        if self.machine_id:
            data["machineId"] = self.machine_id
        if self.notes:
            data["notes"] = self.notes
        if isinstance(self.swap_state, PendingSwap):
            data["swapRequest"] = {
                "targetWorkerId": self.swap_state.target_worker_id,
                "status": "pending"
            }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Shift':
        swap_data = data.get("swapRequest")
        if swap_data and swap_data.get("targetWorkerId"):
            swap_state = PendingSwap(swap_data["targetWorkerId"])
        else:
            swap_state = IDLE
        return cls(
            id=data["id"],
            worker_id=data.get("workerId", ""),
            date=data.get("date", ""),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
            department_id=data.get("departmentId") or None,
            machine_id=data.get("machineId") or None,
            notes=data.get("notes") or None,
            swap_state=swap_state
        )


@dataclass(frozen=True)
class SwapMetadata:
    shift_id: str
    original_worker_id: str
    target_worker_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "shiftId": self.shift_id,
            "originalWorkerId": self.original_worker_id,
            "targetWorkerId": self.target_worker_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SwapMetadata':
        return cls(
            shift_id=data["shiftId"],
            original_worker_id=data["originalWorkerId"],
            target_worker_id=data["targetWorkerId"]
        )


@dataclass(frozen=True)
class Notification:
    """Event record surfaced to users. Immutable except for the read flag,
    which is changed by building a copy with dataclasses.replace."""
    id: str
    message: str
    timestamp: str
    read: bool

    type = "info"

    @property
    def shift_id(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "type": self.type,
            "read": self.read,
            "timestamp": self.timestamp
        }


@dataclass(frozen=True)
class InfoNotification(Notification):
    type = "info"


@dataclass(frozen=True)
class _SwapNotification(Notification):
    metadata: SwapMetadata

    @property
    def shift_id(self) -> Optional[str]:
        return self.metadata.shift_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["metadata"] = self.metadata.to_dict()
        return data


@dataclass(frozen=True)
class SwapRequestNotification(_SwapNotification):
    type = "swap_request"


@dataclass(frozen=True)
class SwapApprovedNotification(_SwapNotification):
    type = "swap_approved"


@dataclass(frozen=True)
class SwapRejectedNotification(_SwapNotification):
    type = "swap_rejected"


NOTIFICATION_TYPES = {
    cls.type: cls for cls in (
        InfoNotification,
        SwapRequestNotification,
        SwapApprovedNotification,
        SwapRejectedNotification,
    )
}


def notification_from_dict(data: Dict[str, Any]) -> Notification:
    """Build the notification variant named by data["type"].

    Swap types stored without usable metadata (as older files may contain)
    are loaded as InfoNotification so their message is kept.
    """
    common = dict(
        id=data["id"],
        message=data.get("message", ""),
        timestamp=data.get("timestamp") or utc_timestamp(),
        read=bool(data.get("read", False))
    )
    notification_cls = NOTIFICATION_TYPES.get(data.get("type"), InfoNotification)
    if issubclass(notification_cls, _SwapNotification):
        try:
            metadata = SwapMetadata.from_dict(data.get("metadata") or {})
        except KeyError:
            logging.warning(f"Notification {data['id']} has no swap metadata, loading as info")
            return InfoNotification(**common)
        return notification_cls(metadata=metadata, **common)
    return InfoNotification(**common)


@dataclass
class ScheduleData:
    """Snapshot of every collection, as returned by DataManager.load_all"""
    workers: List[Worker] = field(default_factory=list)
    machines: List[Machine] = field(default_factory=list)
    departments: List[Department] = field(default_factory=list)
    shifts: List[Shift] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)

    def worker_name(self, worker_id: Optional[str], default: str = "") -> str:
        for worker in self.workers:
            if worker.id == worker_id:
                return worker.name
        return default

    def machine_name(self, machine_id: Optional[str], default: str = "") -> str:
        for machine in self.machines:
            if machine.id == machine_id:
                return machine.name
        return default

    def department_name(self, department_id: Optional[str], default: str = "") -> str:
        for department in self.departments:
            if department.id == department_id:
                return department.name
        return default

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workers": [w.to_dict() for w in self.workers],
            "machines": [m.to_dict() for m in self.machines],
            "departments": [d.to_dict() for d in self.departments],
            "shifts": [s.to_dict() for s in self.shifts],
            "notifications": [n.to_dict() for n in self.notifications]
        }


class DataManager:
    """Manages all data persistence and CRUD operations.

    The in-memory document is guarded by a single re-entrant lock; every
    mutation goes through it and is written to disk once the outermost
    transaction completes.
    """

    def __init__(self, data_file: str = "data/schedule_data.json"):
        if data_file == "data/schedule_data.json":
            # Use path relative to the package directory
            data_file = Path(__file__).parent.parent / "data" / "schedule_data.json"
        self.data_file = Path(data_file)
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._dirty = False
        self.data = self._load_or_create_data()

    def _load_or_create_data(self) -> Dict[str, Any]:
        """Load existing data or create default structure with recovery from backup"""
        backup_file = self.data_file.with_suffix('.bak')
        if self.data_file.exists():
            try:
                with open(self.data_file, 'r', encoding='utf-8') as f:
                    return self._validate_and_migrate_data(json.load(f))
            except (json.JSONDecodeError, IOError, DataFileCorruptedError) as e:
                logging.error(f"Error loading main data file {self.data_file}: {e}")
                if not backup_file.exists():
                    raise DataFileCorruptedError(f"Main data file corrupted and no backup available: {e}")
                return self._recover_from_backup(backup_file)
        if backup_file.exists():
            logging.info(f"Main data file missing, attempting recovery from backup {backup_file}")
            return self._recover_from_backup(backup_file)
        logging.info("No data file found, creating default data")
        return self._create_default_data()

    def _recover_from_backup(self, backup_file: Path) -> Dict[str, Any]:
        try:
            logging.info(f"Attempting recovery from backup file {backup_file}")
            with open(backup_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            backup_file.replace(self.data_file)
            logging.info("Successfully recovered data from backup")
            return self._validate_and_migrate_data(data)
        except (json.JSONDecodeError, IOError, DataFileCorruptedError) as backup_e:
            logging.error(f"Backup file also corrupted: {backup_e}")
            logging.info("Creating default data due to corrupted files")
            return self._create_default_data()

    def _validate_and_migrate_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and migrate data structure to current version"""
        if not isinstance(data, dict):
            raise DataFileCorruptedError("Data file does not contain a JSON object")

        default_data = self._create_default_data()
        for key in default_data:
            if not isinstance(data.get(key), type(default_data[key])):
                data[key] = default_data[key]
        for key, value in default_data["settings"].items():
            data["settings"].setdefault(key, value)

        data["shifts"] = [s for s in data["shifts"] if isinstance(s, dict) and s.get("id")]
        # Shifts written before departments were mandatory carry no key at all
        for shift in data["shifts"]:
            shift.setdefault("departmentId", None)
            swap_request = shift.get("swapRequest")
            if swap_request is not None and not (isinstance(swap_request, dict) and swap_request.get("targetWorkerId")):
                del shift["swapRequest"]

        # Round-trip notifications so malformed swap entries become info
        data["notifications"] = [
            notification_from_dict(n).to_dict()
            for n in data["notifications"] if isinstance(n, dict) and n.get("id")
        ]
        return data

    def _create_default_data(self) -> Dict[str, Any]:
        """Create default data structure"""
        return {
            "settings": {
                "appVersion": APP_VERSION,
                "dataFile": str(self.data_file),
                "lastViewedWeek": None,
                "defaultShiftStart": "08:00",
                "defaultShiftEnd": "16:00",
                "suggestionTimeLimitSeconds": 10.0
            },
            "workers": [],
            "machines": [],
            "departments": [],
            "shifts": [],
            "notifications": []
        }

    def _validate_saved_data(self) -> bool:
        """Validate that the saved data file matches current data"""
        try:
            if not self.data_file.exists():
                raise DataFileNotFoundError(f"Saved data file {self.data_file} does not exist")

            with open(self.data_file, 'r', encoding='utf-8') as f:
                saved_data = json.load(f)

            for key in ("settings",) + SECTIONS:
                if key not in saved_data:
                    raise DataValidationError(f"Required section '{key}' missing from saved data")

            if saved_data["settings"].get("appVersion") != self.data["settings"].get("appVersion"):
                raise DataValidationError("App version mismatch in saved data")

            return True

        except (json.JSONDecodeError, IOError) as e:
            raise DataValidationError(f"Failed to validate saved data: {e}")

    def save_data(self) -> bool:
        """Save current data to file atomically with validation"""
        temp_file = None
        backup_file = self.data_file.with_suffix('.bak')

        with self._lock:
            try:
                self.data_file.parent.mkdir(parents=True, exist_ok=True)
                if self.data_file.exists():
                    self.data_file.replace(backup_file)

                temp_file = self.data_file.with_suffix('.tmp')
                with open(temp_file, 'w', encoding='utf-8') as f:
                    json.dump(self.data, f, indent=2, ensure_ascii=False)

                temp_file.replace(self.data_file)
                self._validate_saved_data()
                self._dirty = False
                return True

            except DataValidationError as e:
                logging.error(f"Data validation failed after save: {e}", exc_info=True)
                if backup_file.exists():
                    try:
                        backup_file.replace(self.data_file)
                    except OSError as restore_e:
                        logging.error(f"Failed to restore from backup: {restore_e}", exc_info=True)
                raise DataSaveError(f"Save operation failed validation: {e}")

            except (IOError, OSError) as e:
                logging.error(f"I/O error during save operation: {e}", exc_info=True)
                raise DataSaveError(f"Failed to save data due to I/O error: {e}")

            finally:
                if temp_file and temp_file.exists():
                    try:
                        temp_file.unlink()
                    except OSError as cleanup_e:
                        logging.error(f"Failed to clean up temporary file {temp_file}: {cleanup_e}", exc_info=True)

    @contextmanager
    def transaction(self):
        """Hold the store lock across a multi-step read-modify-write.

        Nested blocks join the outermost one. The file is written once when
        the outermost block exits; if it raises, the in-memory document is
        rolled back to its state on entry and nothing is written.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            snapshot = copy.deepcopy(self.data) if outermost else None
            self._tx_depth += 1
            try:
                yield self
                if outermost and self._dirty:
                    self.save_data()
            except BaseException:
                # A failed save counts as a failed block
                if outermost:
                    self.data = snapshot
                    self._dirty = False
                raise
            finally:
                self._tx_depth -= 1

    def _commit(self):
        """Mark the document changed; persist now unless inside a transaction"""
        self._dirty = True
        if self._tx_depth == 0:
            self.save_data()

    # Snapshot access
    def load_all(self) -> ScheduleData:
        """Typed snapshot of every collection"""
        with self._lock:
            return ScheduleData(
                workers=[Worker.from_dict(w) for w in self.data["workers"]],
                machines=[Machine.from_dict(m) for m in self.data["machines"]],
                departments=[Department.from_dict(d) for d in self.data["departments"]],
                shifts=[Shift.from_dict(s) for s in self.data["shifts"]],
                notifications=[notification_from_dict(n) for n in self.data["notifications"]]
            )

    def _find_index(self, section: str, item_id: str) -> int:
        for index, item in enumerate(self.data[section]):
            if item["id"] == item_id:
                return index
        return -1

    def _require_name(self, name: str, label: str) -> str:
        name = (name or "").strip()
        if not name:
            raise DataValidationError(f"{label} name is required")
        return name

    # Worker Management
    def get_workers(self) -> List[Worker]:
        with self._lock:
            return [Worker.from_dict(w) for w in self.data["workers"]]

    def get_worker_by_id(self, worker_id: str) -> Optional[Worker]:
        with self._lock:
            index = self._find_index("workers", worker_id)
            return Worker.from_dict(self.data["workers"][index]) if index >= 0 else None

    def add_worker(self, name: str, avatar_url: str = "") -> Worker:
        worker = Worker(id=new_id("w"), name=self._require_name(name, "Worker"), avatar_url=avatar_url)
        with self._lock:
            self.data["workers"].append(worker.to_dict())
            self._commit()
        return worker

    def update_worker(self, worker_id: str, name: str = None, avatar_url: str = None) -> Worker:
        with self._lock:
            index = self._find_index("workers", worker_id)
            if index < 0:
                raise NotFoundError(f"Worker {worker_id} not found")
            worker_data = self.data["workers"][index]
            if name is not None:
                worker_data["name"] = self._require_name(name, "Worker")
            if avatar_url is not None:
                worker_data["avatarUrl"] = avatar_url
            self._commit()
            return Worker.from_dict(worker_data)

    def delete_worker(self, worker_id: str):
        """Delete worker together with their shifts and those shifts' notifications.

        Swaps still waiting on this worker are withdrawn: the shift goes back
        to idle and its open swap_request notification is removed.
        """
        with self.transaction():
            index = self._find_index("workers", worker_id)
            if index < 0:
                raise NotFoundError(f"Worker {worker_id} not found")
            del self.data["workers"][index]
            owned = [s["id"] for s in self.data["shifts"] if s.get("workerId") == worker_id]
            for shift_id in owned:
                self.delete_shift(shift_id)

            withdrawn = set()
            for shift in self.data["shifts"]:
                if (shift.get("swapRequest") or {}).get("targetWorkerId") == worker_id:
                    del shift["swapRequest"]
                    withdrawn.add(shift["id"])
            self.data["notifications"] = [
                n for n in self.data["notifications"]
                if not (n.get("type") == SwapRequestNotification.type
                        and (n.get("metadata") or {}).get("shiftId") in withdrawn)
            ]
            logging.info(f"Deleted worker {worker_id}, {len(owned)} owned shifts, "
                         f"{len(withdrawn)} pending swaps withdrawn")
            self._commit()

    # Machine Management
    def get_machines(self) -> List[Machine]:
        with self._lock:
            return [Machine.from_dict(m) for m in self.data["machines"]]

    def get_machine_by_id(self, machine_id: str) -> Optional[Machine]:
        with self._lock:
            index = self._find_index("machines", machine_id)
            return Machine.from_dict(self.data["machines"][index]) if index >= 0 else None

    def add_machine(self, name: str) -> Machine:
        machine = Machine(id=new_id("m"), name=self._require_name(name, "Machine"))
        with self._lock:
            self.data["machines"].append(machine.to_dict())
            self._commit()
        return machine

    def update_machine(self, machine_id: str, name: str) -> Machine:
        with self._lock:
            index = self._find_index("machines", machine_id)
            if index < 0:
                raise NotFoundError(f"Machine {machine_id} not found")
            self.data["machines"][index]["name"] = self._require_name(name, "Machine")
            self._commit()
            return Machine.from_dict(self.data["machines"][index])

    def delete_machine(self, machine_id: str):
        """Delete machine; shifts that used it keep running without one"""
        with self._lock:
            index = self._find_index("machines", machine_id)
            if index < 0:
                raise NotFoundError(f"Machine {machine_id} not found")
            del self.data["machines"][index]
            for shift in self.data["shifts"]:
                if shift.get("machineId") == machine_id:
                    shift.pop("machineId", None)
            self._commit()

    # Department Management
    def get_departments(self) -> List[Department]:
        with self._lock:
            return [Department.from_dict(d) for d in self.data["departments"]]

    def get_department_by_id(self, department_id: str) -> Optional[Department]:
        with self._lock:
            index = self._find_index("departments", department_id)
            return Department.from_dict(self.data["departments"][index]) if index >= 0 else None

    def add_department(self, name: str) -> Department:
        department = Department(id=new_id("d"), name=self._require_name(name, "Department"))
        with self._lock:
            self.data["departments"].append(department.to_dict())
            self._commit()
        return department

    def update_department(self, department_id: str, name: str) -> Department:
        with self._lock:
            index = self._find_index("departments", department_id)
            if index < 0:
                raise NotFoundError(f"Department {department_id} not found")
            self.data["departments"][index]["name"] = self._require_name(name, "Department")
            self._commit()
            return Department.from_dict(self.data["departments"][index])

    def delete_department(self, department_id: str):
        """Delete department; affected shifts lose the reference"""
        with self._lock:
            index = self._find_index("departments", department_id)
            if index < 0:
                raise NotFoundError(f"Department {department_id} not found")
            del self.data["departments"][index]
            for shift in self.data["shifts"]:
                if shift.get("departmentId") == department_id:
                    shift["departmentId"] = None
            self._commit()

    # Shift Management
    def get_shifts(self) -> List[Shift]:
        with self._lock:
            return [Shift.from_dict(s) for s in self.data["shifts"]]

    def get_shift_by_id(self, shift_id: str) -> Optional[Shift]:
        with self._lock:
            index = self._find_index("shifts", shift_id)
            return Shift.from_dict(self.data["shifts"][index]) if index >= 0 else None

    def get_shifts_between(self, start: date, end: date) -> List[Shift]:
        """Shifts dated start..end inclusive, ordered by date and start time"""
        start_str, end_str = start.strftime(DATE_FORMAT), end.strftime(DATE_FORMAT)
        shifts = [s for s in self.get_shifts() if start_str <= s.date <= end_str]
        return sorted(shifts, key=lambda s: (s.date, s.start_time, s.end_time))

    def get_shifts_for_week(self, week_start: date) -> Dict[str, List[Shift]]:
        """Shifts of the 7 days from week_start, keyed by date string"""
        days = [week_start + timedelta(days=i) for i in range(7)]
        week = {d.strftime(DATE_FORMAT): [] for d in days}
        for shift in self.get_shifts_between(days[0], days[-1]):
            week[shift.date].append(shift)
        return week

    def _validate_shift(self, shift: Shift):
        shift_interval(shift.date, shift.start_time, shift.end_time)
        if self._find_index("workers", shift.worker_id) < 0:
            raise NotFoundError(f"Worker {shift.worker_id} not found")
        if shift.department_id and self._find_index("departments", shift.department_id) < 0:
            raise NotFoundError(f"Department {shift.department_id} not found")
        if shift.machine_id and self._find_index("machines", shift.machine_id) < 0:
            raise NotFoundError(f"Machine {shift.machine_id} not found")
        if isinstance(shift.swap_state, PendingSwap) and \
                self._find_index("workers", shift.swap_state.target_worker_id) < 0:
            raise NotFoundError(f"Worker {shift.swap_state.target_worker_id} not found")

    def add_shift(self, worker_id: str, date_str: str, start_time: str, end_time: str,
                  department_id: Optional[str] = None, machine_id: Optional[str] = None,
                  notes: Optional[str] = None) -> Shift:
        """Create a shift with a fresh id and no swap outstanding"""
        shift = Shift(
            id=new_id("s"),
            worker_id=worker_id,
            date=date_str,
            start_time=start_time,
            end_time=end_time,
            department_id=department_id or None,
            machine_id=machine_id or None,
            notes=(notes or "").strip() or None
        )
        self.save_shift(shift)
        return shift

    def save_shift(self, shift: Shift):
        """Append a new shift"""
        with self._lock:
            if self._find_index("shifts", shift.id) >= 0:
                raise DataValidationError(f"Shift {shift.id} already exists")
            self._validate_shift(shift)
            self.data["shifts"].append(shift.to_dict())
            self._commit()

    def replace_shift(self, shift: Shift):
        """Overwrite the stored shift with the same id"""
        with self._lock:
            index = self._find_index("shifts", shift.id)
            if index < 0:
                raise NotFoundError(f"Shift {shift.id} not found")
            self._validate_shift(shift)
            self.data["shifts"][index] = shift.to_dict()
            self._commit()

    def update_shift(self, shift_id: str, **changes) -> Shift:
        """Apply field changes (dataclass field names) to a stored shift"""
        with self._lock:
            shift = self.get_shift_by_id(shift_id)
            if shift is None:
                raise NotFoundError(f"Shift {shift_id} not found")
            if "swap_state" in changes or "id" in changes:
                raise DataValidationError("Shift id and swap state cannot be edited directly")
            updated = replace(shift, **changes)
            self.replace_shift(updated)
            return updated

    def move_shift(self, shift_id: str, new_date: str) -> Shift:
        return self.update_shift(shift_id, date=new_date)

    def delete_shift(self, shift_id: str):
        """Delete shift and every notification that references it"""
        with self._lock:
            index = self._find_index("shifts", shift_id)
            if index < 0:
                raise NotFoundError(f"Shift {shift_id} not found")
            del self.data["shifts"][index]
            before = len(self.data["notifications"])
            self.data["notifications"] = [
                n for n in self.data["notifications"]
                if (n.get("metadata") or {}).get("shiftId") != shift_id
            ]
            removed = before - len(self.data["notifications"])
            if removed:
                logging.info(f"Removed {removed} notifications with shift {shift_id}")
            self._commit()

    # Notifications
    def get_notifications(self, unread_only: bool = False) -> List[Notification]:
        """Notifications, newest first"""
        with self._lock:
            notifications = [notification_from_dict(n) for n in self.data["notifications"]]
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return sorted(notifications, key=lambda n: n.timestamp, reverse=True)

    def get_notification_by_id(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            index = self._find_index("notifications", notification_id)
            return notification_from_dict(self.data["notifications"][index]) if index >= 0 else None

    def get_unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self.data["notifications"] if not n.get("read"))

    def append_notification(self, notification: Notification):
        with self._lock:
            if self._find_index("notifications", notification.id) >= 0:
                raise DataValidationError(f"Notification {notification.id} already exists")
            self.data["notifications"].insert(0, notification.to_dict())
            self._commit()

    def update_notification(self, notification: Notification):
        with self._lock:
            index = self._find_index("notifications", notification.id)
            if index < 0:
                raise NotFoundError(f"Notification {notification.id} not found")
            self.data["notifications"][index] = notification.to_dict()
            self._commit()

    def delete_notification(self, notification_id: str):
        with self._lock:
            index = self._find_index("notifications", notification_id)
            if index < 0:
                raise NotFoundError(f"Notification {notification_id} not found")
            del self.data["notifications"][index]
            self._commit()

    # Settings
    def get_setting(self, key: str, default=None):
        """Get application setting"""
        with self._lock:
            return self.data["settings"].get(key, default)

    def set_setting(self, key: str, value):
        """Set application setting"""
        with self._lock:
            self.data["settings"][key] = value
            self._commit()

    def bulk_add_shifts(self, shifts: Iterable[Shift]) -> List[Shift]:
        """Save several shifts in one write"""
        saved = []
        with self.transaction():
            for shift in shifts:
                self.save_shift(shift)
                saved.append(shift)
        return saved
