import pytest
import sys
from pathlib import Path
import tempfile
import os
import json

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shift_planner.data_manager import DataManager, DataValidationError, ScheduleData
from shift_planner.scheduler_logic import ShiftScheduler, ShiftCandidate, find_conflict


@pytest.fixture
def data_manager():
    """Fixture for a clean, isolated DataManager instance for each test."""
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".json", delete=False
    ) as temp_file:
        temp_path = temp_file.name
        json.dump({}, temp_file)

    dm = DataManager(temp_path)
    yield dm
    os.unlink(temp_path)


@pytest.fixture
def setup(data_manager):
    alice = data_manager.add_worker("Alice")
    bob = data_manager.add_worker("Bob")
    assembly = data_manager.add_department("Assembly")
    press = data_manager.add_machine("Press 1")
    morning = data_manager.add_shift(alice.id, "2025-03-10", "08:00", "12:00",
                                     department_id=assembly.id, machine_id=press.id)
    return {
        "scheduler": ShiftScheduler(data_manager),
        "alice": alice,
        "bob": bob,
        "press": press,
        "morning": morning,
    }


def test_overlapping_worker_shift_is_reported(setup):
    """
    Why this is important: A worker cannot be in two places at once. The
    planner must hear about the double booking before saving.
    """
    result = setup["scheduler"].check_conflict(ShiftCandidate(
        worker_id=setup["alice"].id, date="2025-03-10", start_time="10:00", end_time="14:00"
    ))
    assert result.has_conflict
    assert result.message == "Alice is already booked on an overlapping shift."
    assert result.conflicting_shift_id == setup["morning"].id


def test_back_to_back_shifts_do_not_conflict(setup):
    """
    Why this is important: Shifts are half-open intervals. A handover at
    12:00 is the normal case and must not be flagged.
    """
    scheduler = setup["scheduler"]
    after = ShiftCandidate(worker_id=setup["alice"].id, date="2025-03-10",
                           start_time="12:00", end_time="16:00", machine_id=setup["press"].id)
    before = ShiftCandidate(worker_id=setup["alice"].id, date="2025-03-10",
                            start_time="06:00", end_time="08:00", machine_id=setup["press"].id)
    assert not scheduler.check_conflict(after).has_conflict
    assert not scheduler.check_conflict(before).has_conflict


def test_editing_a_shift_ignores_itself(setup):
    """
    Why this is important: When a shift is edited it would always overlap
    its own stored version unless it is excluded from the check.
    """
    candidate = ShiftCandidate.from_shift(setup["morning"])
    candidate.end_time = "13:00"
    assert not setup["scheduler"].check_conflict(candidate).has_conflict


def test_machine_in_use_is_reported(setup):
    result = setup["scheduler"].check_conflict(ShiftCandidate(
        worker_id=setup["bob"].id, date="2025-03-10", start_time="11:00", end_time="15:00",
        machine_id=setup["press"].id
    ))
    assert result.has_conflict
    assert result.message == "Machine Press 1 is already in use during an overlapping shift."
    assert result.conflicting_shift_id == setup["morning"].id


def test_worker_conflict_takes_precedence_over_machine(setup):
    """
    Why this is important: When both rules are broken, the planner sees the
    worker problem first, since it is the one that needs a different person.
    """
    result = setup["scheduler"].check_conflict(ShiftCandidate(
        worker_id=setup["alice"].id, date="2025-03-10", start_time="09:00", end_time="10:00",
        machine_id=setup["press"].id
    ))
    assert result.message.startswith("Alice")


def test_other_days_and_other_workers_are_free(setup):
    scheduler = setup["scheduler"]
    assert not scheduler.check_conflict(ShiftCandidate(
        worker_id=setup["alice"].id, date="2025-03-11", start_time="08:00", end_time="12:00"
    )).has_conflict
    assert not scheduler.check_conflict(ShiftCandidate(
        worker_id=setup["bob"].id, date="2025-03-10", start_time="08:00", end_time="12:00"
    )).has_conflict


def test_inverted_time_range_is_rejected(setup):
    with pytest.raises(DataValidationError):
        setup["scheduler"].check_conflict(ShiftCandidate(
            worker_id=setup["alice"].id, date="2025-03-10", start_time="14:00", end_time="10:00"
        ))
    with pytest.raises(DataValidationError):
        setup["scheduler"].check_conflict(ShiftCandidate(
            worker_id=setup["alice"].id, date="2025-03-10", start_time="10:00", end_time="10:00"
        ))


def test_unknown_names_fall_back_to_generic_labels(setup, data_manager):
    schedule = data_manager.load_all()
    orphaned = ScheduleData(shifts=schedule.shifts)

    worker_result = find_conflict(ShiftCandidate(
        worker_id=setup["alice"].id, date="2025-03-10", start_time="09:00", end_time="10:00"
    ), orphaned)
    assert worker_result.message == "Worker is already booked on an overlapping shift."

    machine_result = find_conflict(ShiftCandidate(
        worker_id=setup["bob"].id, date="2025-03-10", start_time="09:00", end_time="10:00",
        machine_id=setup["press"].id
    ), orphaned)
    assert machine_result.message == "Machine Machine is already in use during an overlapping shift."


def test_candidate_from_request_payload(setup):
    candidate = ShiftCandidate.from_dict({
        "workerId": setup["alice"].id,
        "date": "2025-03-10",
        "startTime": "08:00",
        "endTime": "12:00",
        "shiftIdToIgnore": setup["morning"].id,
    })
    result = setup["scheduler"].check_conflict(candidate)
    assert result.to_dict() == {"hasConflict": False, "message": "", "conflictingShiftId": None}


def test_saving_an_inverted_shift_is_rejected(setup, data_manager):
    with pytest.raises(DataValidationError):
        data_manager.add_shift(setup["bob"].id, "2025-03-10", "18:00", "09:00")
    assert len(data_manager.get_shifts()) == 1


def test_full_day_shift_scenario(data_manager):
    worker = data_manager.add_worker("A")
    data_manager.add_shift(worker.id, "2024-06-10", "08:00", "16:00")
    scheduler = ShiftScheduler(data_manager)

    inside = scheduler.check_conflict(ShiftCandidate(
        worker_id=worker.id, date="2024-06-10", start_time="09:00", end_time="11:00"))
    evening = scheduler.check_conflict(ShiftCandidate(
        worker_id=worker.id, date="2024-06-10", start_time="16:00", end_time="18:00"))

    assert inside.has_conflict
    assert evening.to_dict()["hasConflict"] is False
    assert evening.message == ""
