"""
Scheduler Logic for Shift Planning System

Detects worker and machine overlaps between shifts, and fills requested
shift slots with workers using CP-SAT optimization.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple, Any
from dataclasses import dataclass, field
import logging
import time

from ortools.sat.python import cp_model

from .data_manager import (
    DataManager, DataValidationError, ScheduleData, Shift, new_id, shift_interval
)

logger = logging.getLogger(__name__)

UNKNOWN_WORKER_LABEL = "Worker"
UNKNOWN_MACHINE_LABEL = "Machine"


@dataclass
class ShiftCandidate:
    """A shift as proposed by the caller, before it is saved"""
    worker_id: str
    date: str
    start_time: str
    end_time: str
    machine_id: Optional[str] = None
    exclude_shift_id: Optional[str] = None

    @classmethod
    def from_shift(cls, shift: Shift) -> 'ShiftCandidate':
        """Candidate for re-checking a stored shift against everything else"""
        return cls(
            worker_id=shift.worker_id,
            date=shift.date,
            start_time=shift.start_time,
            end_time=shift.end_time,
            machine_id=shift.machine_id,
            exclude_shift_id=shift.id
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftCandidate':
        return cls(
            worker_id=data.get("workerId", ""),
            date=data.get("date", ""),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
            machine_id=data.get("machineId") or None,
            exclude_shift_id=data.get("excludeShiftId") or data.get("shiftIdToIgnore") or None
        )


@dataclass
class ConflictResult:
    """Result of a conflict check"""
    has_conflict: bool
    message: str = ""
    conflicting_shift_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasConflict": self.has_conflict,
            "message": self.message,
            "conflictingShiftId": self.conflicting_shift_id
        }


NO_CONFLICT = ConflictResult(has_conflict=False)


def _overlapping_shift(shifts: List[Shift], start: datetime, end: datetime,
                       date_str: str, exclude_shift_id: Optional[str], matches) -> Optional[Shift]:
    for shift in shifts:
        if shift.id == exclude_shift_id or shift.date != date_str or not matches(shift):
            continue
        try:
            other_start, other_end = shift.interval()
        except DataValidationError:
            logger.warning(f"Skipping shift {shift.id} with unusable times in conflict check")
            continue
        if start < other_end and end > other_start:
            return shift
    return None


def find_conflict(candidate: ShiftCandidate, schedule: ScheduleData) -> ConflictResult:
    """Check candidate against the shifts of a loaded schedule.

    Worker overlaps are reported before machine overlaps. Intervals are
    half-open, so a shift ending at 12:00 does not collide with one starting
    at 12:00.
    """
    start, end = shift_interval(candidate.date, candidate.start_time, candidate.end_time)

    worker_clash = _overlapping_shift(
        schedule.shifts, start, end, candidate.date, candidate.exclude_shift_id,
        lambda s: s.worker_id == candidate.worker_id
    )
    if worker_clash:
        name = schedule.worker_name(candidate.worker_id, UNKNOWN_WORKER_LABEL)
        return ConflictResult(
            has_conflict=True,
            message=f"{name} is already booked on an overlapping shift.",
            conflicting_shift_id=worker_clash.id
        )

    if candidate.machine_id:
        machine_clash = _overlapping_shift(
            schedule.shifts, start, end, candidate.date, candidate.exclude_shift_id,
            lambda s: s.machine_id == candidate.machine_id
        )
        if machine_clash:
            name = schedule.machine_name(candidate.machine_id, UNKNOWN_MACHINE_LABEL)
            return ConflictResult(
                has_conflict=True,
                message=f"Machine {name} is already in use during an overlapping shift.",
                conflicting_shift_id=machine_clash.id
            )

    return NO_CONFLICT


@dataclass
class ShiftRequirement:
    """A slot to be filled by the suggestion solver"""
    date: str
    start_time: str
    end_time: str
    department_id: Optional[str] = None
    machine_id: Optional[str] = None
    workers_needed: int = 1

    def interval(self) -> Tuple[datetime, datetime]:
        return shift_interval(self.date, self.start_time, self.end_time)


@dataclass
class ShiftSuggestion:
    """A proposed shift, ready to be applied"""
    worker_id: str
    worker_name: str
    date: str
    start_time: str
    end_time: str
    department_id: Optional[str] = None
    department_name: str = ""
    machine_id: Optional[str] = None
    machine_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "workerName": self.worker_name,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "departmentName": self.department_name,
        }
        if self.machine_name:
            data["machineName"] = self.machine_name
        return data


@dataclass
class SuggestionResult:
    """Result of suggestion generation"""
    success: bool
    suggestions: List[ShiftSuggestion]
    unfilled: List[Dict[str, Any]] = field(default_factory=list)
    message: str = ""


class ShiftScheduler:
    """Conflict checks and CP-SAT shift suggestions over a DataManager"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager

    def check_conflict(self, candidate: ShiftCandidate) -> ConflictResult:
        """Report whether candidate overlaps a stored shift for the same worker or machine"""
        result = find_conflict(candidate, self.data_manager.load_all())
        if result.has_conflict:
            logger.info(f"Conflict for worker {candidate.worker_id} on {candidate.date}: {result.message}")
        return result

    def suggest_shifts(self, requirements: List[ShiftRequirement],
                       time_limit_seconds: Optional[float] = None) -> SuggestionResult:
        """
        Assign workers to requested slots using CP-SAT optimization

        Args:
            requirements: Slots to fill
            time_limit_seconds: Solver limit, defaults to the stored setting

        No worker gets a slot that collides with one of their stored shifts
        or with another suggested slot; a machine slot is never double booked.
        Slots that cannot be filled are listed in the result.
        """
        start = time.time()
        if time_limit_seconds is None:
            time_limit_seconds = float(self.data_manager.get_setting("suggestionTimeLimitSeconds", 10.0))

        schedule = self.data_manager.load_all()
        self._validate_requirements(requirements, schedule)

        if not requirements:
            return SuggestionResult(success=True, suggestions=[], message="No shift requirements given")
        if not schedule.workers:
            return SuggestionResult(
                success=False,
                suggestions=[],
                unfilled=[self._unfilled_entry(r, r.workers_needed) for r in requirements],
                message="Failed to suggest shifts: no workers available"
            )

        model, variables = self._create_cp_sat_model(requirements, schedule)
        logger.info(f"Created suggestion model with {len(schedule.workers)} workers "
                    f"and {len(requirements)} requirements")

        solver = self._solve_cp_sat_model(model, time_limit_seconds)
        if solver is None:
            return SuggestionResult(
                success=False,
                suggestions=[],
                unfilled=[self._unfilled_entry(r, r.workers_needed) for r in requirements],
                message="Failed to suggest shifts using CP-SAT"
            )

        suggestions, unfilled = self._extract_suggestions(solver, variables, requirements, schedule)
        message = f"Suggested {len(suggestions)} shifts using CP-SAT"
        if unfilled:
            message += f", {sum(u['missing'] for u in unfilled)} slots could not be filled"

        logger.info(f"Suggestion generation completed in {time.time() - start:.2f}s: {message}")
        return SuggestionResult(success=True, suggestions=suggestions, unfilled=unfilled, message=message)

    def _validate_requirements(self, requirements: List[ShiftRequirement], schedule: ScheduleData):
        department_ids = {d.id for d in schedule.departments}
        machine_ids = {m.id for m in schedule.machines}
        for requirement in requirements:
            requirement.interval()
            if requirement.workers_needed < 1:
                raise DataValidationError("A shift requirement needs at least one worker")
            if requirement.machine_id and requirement.workers_needed != 1:
                raise DataValidationError("A machine can only be staffed by one worker per shift")
            if requirement.department_id and requirement.department_id not in department_ids:
                raise DataValidationError(f"Unknown department {requirement.department_id}")
            if requirement.machine_id and requirement.machine_id not in machine_ids:
                raise DataValidationError(f"Unknown machine {requirement.machine_id}")

    def _create_cp_sat_model(self, requirements: List[ShiftRequirement],
                             schedule: ScheduleData) -> Tuple[Any, Dict]:
        """
        Create CP-SAT model for filling requirements

        Returns:
            Tuple of (model, variables_dict)
        """
        model = cp_model.CpModel()
        workers = schedule.workers
        intervals = [r.interval() for r in requirements]

        # Decision variables: x[w][r] = 1 if worker w fills requirement r
        x = {}
        for worker in workers:
            x[worker.id] = {}
            for r_index in range(len(requirements)):
                x[worker.id][r_index] = model.NewBoolVar(f"x_{worker.id}_{r_index}")

        # Constraint 1: No slot beyond what each requirement asks for
        for r_index, requirement in enumerate(requirements):
            model.Add(sum(x[w.id][r_index] for w in workers) <= requirement.workers_needed)

        # Constraint 2: Respect stored shifts of the worker and of the machine
        for r_index, requirement in enumerate(requirements):
            if requirement.machine_id:
                machine_busy = find_conflict(
                    ShiftCandidate(worker_id="", date=requirement.date,
                                   start_time=requirement.start_time, end_time=requirement.end_time,
                                   machine_id=requirement.machine_id),
                    schedule
                ).has_conflict
                if machine_busy:
                    for worker in workers:
                        model.Add(x[worker.id][r_index] == 0)
                    continue
            for worker in workers:
                candidate = ShiftCandidate(
                    worker_id=worker.id,
                    date=requirement.date,
                    start_time=requirement.start_time,
                    end_time=requirement.end_time
                )
                if find_conflict(candidate, schedule).has_conflict:
                    model.Add(x[worker.id][r_index] == 0)

        # Constraint 3: Overlapping requirements never share a worker or a machine
        for a in range(len(requirements)):
            for b in range(a + 1, len(requirements)):
                if requirements[a].date != requirements[b].date:
                    continue
                (a_start, a_end), (b_start, b_end) = intervals[a], intervals[b]
                if not (a_start < b_end and a_end > b_start):
                    continue
                for worker in workers:
                    model.Add(x[worker.id][a] + x[worker.id][b] <= 1)
                if requirements[a].machine_id and requirements[a].machine_id == requirements[b].machine_id:
                    model.Add(sum(x[w.id][a] for w in workers) + sum(x[w.id][b] for w in workers) <= 1)

        # Objective: fill as many slots as possible, then spread the load
        requested_dates = {r.date for r in requirements}
        existing_load = {
            w.id: sum(1 for s in schedule.shifts if s.worker_id == w.id and s.date in requested_dates)
            for w in workers
        }
        max_load = model.NewIntVar(0, len(requirements) + len(schedule.shifts), "max_load")
        for worker in workers:
            model.Add(existing_load[worker.id] + sum(x[worker.id].values()) <= max_load)

        filled = sum(x[w.id][r] for w in workers for r in range(len(requirements)))
        model.Maximize(filled * (len(requirements) + len(schedule.shifts) + 1) - max_load)

        variables = {
            'x': x,
            'num_requirements': len(requirements),
        }
        return model, variables

    def _solve_cp_sat_model(self, model: Any, time_limit_seconds: float = 10.0) -> Optional[Any]:
        """Solve the CP-SAT model with time limit"""
        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = time_limit_seconds

        status = solver.Solve(model)

        if status in [cp_model.OPTIMAL, cp_model.FEASIBLE]:
            return solver
        else:
            logger.warning(f"CP-SAT solver failed with status: {solver.StatusName(status)}")
            return None

    def _extract_suggestions(self, solver: Any, variables: Dict, requirements: List[ShiftRequirement],
                             schedule: ScheduleData) -> Tuple[List[ShiftSuggestion], List[Dict[str, Any]]]:
        """Extract suggestions and unfilled slots from CP-SAT solution"""
        x = variables['x']
        suggestions = []
        unfilled = []

        for r_index, requirement in enumerate(requirements):
            assigned = [w for w in schedule.workers if solver.Value(x[w.id][r_index]) == 1]
            for worker in assigned:
                suggestions.append(ShiftSuggestion(
                    worker_id=worker.id,
                    worker_name=worker.name,
                    date=requirement.date,
                    start_time=requirement.start_time,
                    end_time=requirement.end_time,
                    department_id=requirement.department_id,
                    department_name=schedule.department_name(requirement.department_id),
                    machine_id=requirement.machine_id,
                    machine_name=schedule.machine_name(requirement.machine_id) or None
                ))
            missing = requirement.workers_needed - len(assigned)
            if missing > 0:
                unfilled.append(self._unfilled_entry(requirement, missing))

        return suggestions, unfilled

    def _unfilled_entry(self, requirement: ShiftRequirement, missing: int) -> Dict[str, Any]:
        return {
            "date": requirement.date,
            "startTime": requirement.start_time,
            "endTime": requirement.end_time,
            "departmentId": requirement.department_id,
            "machineId": requirement.machine_id,
            "missing": missing
        }

    def apply_suggestions(self, suggestions: List[ShiftSuggestion]) -> List[Shift]:
        """
        Save suggestions as shifts.

        Each one is re-checked against the current schedule (including the
        suggestions saved before it); conflicting or dangling ones are skipped.
        """
        saved = []
        with self.data_manager.transaction():
            for suggestion in suggestions:
                candidate = ShiftCandidate(
                    worker_id=suggestion.worker_id,
                    date=suggestion.date,
                    start_time=suggestion.start_time,
                    end_time=suggestion.end_time,
                    machine_id=suggestion.machine_id
                )
                schedule = self.data_manager.load_all()
                if not schedule.worker_name(suggestion.worker_id) or \
                        (suggestion.department_id and not schedule.department_name(suggestion.department_id)) or \
                        (suggestion.machine_id and not schedule.machine_name(suggestion.machine_id)):
                    logger.warning(f"Could not create shift for {suggestion.worker_name} "
                                   f"in {suggestion.department_name}, data mismatch.")
                    continue
                conflict = find_conflict(candidate, schedule)
                if conflict.has_conflict:
                    logger.warning(f"Skipping suggestion for {suggestion.worker_name} "
                                   f"on {suggestion.date}: {conflict.message}")
                    continue
                shift = Shift(
                    id=new_id("s"),
                    worker_id=suggestion.worker_id,
                    date=suggestion.date,
                    start_time=suggestion.start_time,
                    end_time=suggestion.end_time,
                    department_id=suggestion.department_id,
                    machine_id=suggestion.machine_id
                )
                self.data_manager.save_shift(shift)
                saved.append(shift)
        logger.info(f"Applied {len(saved)} of {len(suggestions)} suggested shifts")
        return saved
