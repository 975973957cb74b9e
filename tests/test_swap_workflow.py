import pytest
import sys
from pathlib import Path
import json
import threading

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shift_planner.data_manager import (
    DataManager, DataSaveError, DataValidationError, InvalidStateError, NotFoundError,
    InfoNotification, PendingSwap, SwapRequestNotification, IDLE, new_id, utc_timestamp
)
from shift_planner.swap_workflow import SwapWorkflow, SwapDecision


@pytest.fixture
def data_manager(tmp_path):
    data_file = tmp_path / "schedule.json"
    data_file.write_text(json.dumps({}))
    return DataManager(str(data_file))


@pytest.fixture
def workflow(data_manager):
    return SwapWorkflow(data_manager)


@pytest.fixture
def crew(data_manager):
    alice = data_manager.add_worker("Alice")
    bob = data_manager.add_worker("Bob")
    carol = data_manager.add_worker("Carol")
    shift = data_manager.add_shift(alice.id, "2025-03-10", "08:00", "16:00")
    return alice, bob, carol, shift


def test_propose_marks_shift_pending_and_notifies(workflow, data_manager, crew):
    alice, bob, _, shift = crew

    proposal = workflow.propose_swap(shift.id, bob.id)

    assert proposal.shift.swap_state == PendingSwap(bob.id)
    assert proposal.shift.worker_id == alice.id
    assert isinstance(proposal.notification, SwapRequestNotification)
    assert proposal.notification.message == "Alice proposed a shift swap to Bob"
    assert proposal.notification.metadata.shift_id == shift.id
    assert not proposal.notification.read

    # Persisted, including the wire shape of the pending request
    reloaded = DataManager(str(data_manager.data_file))
    stored = reloaded.get_shift_by_id(shift.id)
    assert stored.to_dict()["swapRequest"] == {"targetWorkerId": bob.id, "status": "pending"}
    assert reloaded.get_unread_count() == 1


def test_approve_hands_shift_to_target(workflow, data_manager, crew):
    """
    Why this is important: Approval is the whole point of the workflow. The
    shift must change hands and both workers must be told.
    """
    alice, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification

    resolution = workflow.respond_to_swap(request.id, SwapDecision.APPROVED)

    assert resolution.updated_shift.worker_id == bob.id
    assert resolution.updated_shift.swap_state == IDLE
    assert "swapRequest" not in resolution.updated_shift.to_dict()

    read_request, *created = resolution.updated_notifications
    assert read_request.id == request.id and read_request.read
    assert [n.type for n in created] == ["swap_approved", "swap_approved"]
    assert created[0].message == "Your swap request to Bob was approved."
    assert created[1].message == "You accepted the swap with Alice. The shift is now yours."

    assert data_manager.get_shift_by_id(shift.id).worker_id == bob.id
    assert data_manager.get_unread_count() == 2


def test_reject_keeps_original_worker(workflow, data_manager, crew):
    alice, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification

    resolution = workflow.respond_to_swap(request.id, "rejected")

    assert resolution.updated_shift.worker_id == alice.id
    assert not resolution.updated_shift.has_pending_swap
    assert len(resolution.updated_notifications) == 2
    assert resolution.updated_notifications[1].message == "Your swap request to Bob was rejected."
    assert resolution.to_dict()["updatedShift"]["workerId"] == alice.id


def test_second_response_is_refused(workflow, data_manager, crew):
    """
    Why this is important: A request answered twice could hand a shift to a
    worker after it was already rejected, or create duplicate notifications.
    """
    _, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification
    workflow.respond_to_swap(request.id, SwapDecision.REJECTED)
    notifications_before = len(data_manager.get_notifications())

    with pytest.raises(InvalidStateError):
        workflow.respond_to_swap(request.id, SwapDecision.APPROVED)

    assert data_manager.get_shift_by_id(shift.id).worker_id != bob.id
    assert len(data_manager.get_notifications()) == notifications_before


def test_marking_request_read_does_not_block_response(workflow, crew):
    _, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification
    workflow.mark_as_read([request.id])

    resolution = workflow.respond_to_swap(request.id, SwapDecision.APPROVED)
    assert resolution.updated_shift.worker_id == bob.id


def test_second_proposal_on_pending_shift_is_refused(workflow, data_manager, crew):
    _, bob, carol, shift = crew
    workflow.propose_swap(shift.id, bob.id)

    with pytest.raises(InvalidStateError):
        workflow.propose_swap(shift.id, carol.id)

    assert data_manager.get_shift_by_id(shift.id).swap_state == PendingSwap(bob.id)
    assert len(data_manager.get_notifications()) == 1


def test_proposal_precondition_failures(workflow, data_manager, crew):
    alice, bob, _, shift = crew

    with pytest.raises(NotFoundError):
        workflow.propose_swap("s-missing", bob.id)
    with pytest.raises(NotFoundError):
        workflow.propose_swap(shift.id, "w-missing")
    with pytest.raises(DataValidationError):
        workflow.propose_swap(shift.id, alice.id)

    assert not data_manager.get_shift_by_id(shift.id).has_pending_swap
    assert data_manager.get_notifications() == []


def test_response_precondition_failures(workflow, data_manager, crew):
    _, bob, _, shift = crew
    info = InfoNotification(id=new_id("n"), message="Welcome", timestamp=utc_timestamp(), read=False)
    data_manager.append_notification(info)
    request = workflow.propose_swap(shift.id, bob.id).notification

    with pytest.raises(NotFoundError):
        workflow.respond_to_swap("n-missing", SwapDecision.APPROVED)
    with pytest.raises(InvalidStateError):
        workflow.respond_to_swap(info.id, SwapDecision.APPROVED)
    with pytest.raises(DataValidationError):
        workflow.respond_to_swap(request.id, "maybe")

    assert data_manager.get_shift_by_id(shift.id).has_pending_swap


def test_failed_write_rolls_back_the_proposal(workflow, data_manager, crew, monkeypatch):
    """
    Why this is important: The pending flag and its notification must never
    be persisted one without the other, or the request can never be answered.
    """
    _, bob, _, shift = crew

    def failing_append(notification):
        raise DataSaveError("disk full")

    monkeypatch.setattr(data_manager, "append_notification", failing_append)

    with pytest.raises(DataSaveError):
        workflow.propose_swap(shift.id, bob.id)

    assert not data_manager.get_shift_by_id(shift.id).has_pending_swap
    reloaded = DataManager(str(data_manager.data_file))
    assert not reloaded.get_shift_by_id(shift.id).has_pending_swap


def test_concurrent_proposals_only_one_wins(workflow, data_manager, crew):
    _, bob, carol, shift = crew
    outcomes = []
    barrier = threading.Barrier(2)

    def propose(target_id):
        barrier.wait()
        try:
            workflow.propose_swap(shift.id, target_id)
            outcomes.append("ok")
        except InvalidStateError:
            outcomes.append("refused")

    threads = [threading.Thread(target=propose, args=(w.id,)) for w in (bob, carol)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "refused"]
    assert len(data_manager.get_notifications()) == 1


def test_mark_as_read_ignores_unknown_ids(workflow, data_manager, crew):
    _, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification

    updated = workflow.mark_as_read([request.id, "n-unknown"])

    assert [n.id for n in updated] == [request.id]
    assert data_manager.get_unread_count() == 0


def test_delete_notification(workflow, data_manager, crew):
    _, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification

    workflow.delete_notification(request.id)
    assert data_manager.get_notification_by_id(request.id) is None

    with pytest.raises(NotFoundError):
        workflow.delete_notification(request.id)


def test_deleting_shift_removes_its_swap_notifications(workflow, data_manager, crew):
    _, bob, _, shift = crew
    request = workflow.propose_swap(shift.id, bob.id).notification
    workflow.respond_to_swap(request.id, SwapDecision.APPROVED)
    assert len(data_manager.get_notifications()) == 3

    data_manager.delete_shift(shift.id)

    assert data_manager.get_notifications() == []


def test_failed_save_rolls_back_the_proposal(workflow, data_manager, crew, monkeypatch):
    """
    Why this is important: When the file cannot be written the caller sees an
    error, so the in-memory roster must not keep a swap nobody was told about.
    """
    _, bob, _, shift = crew

    def failing_save():
        raise DataSaveError("disk full")

    monkeypatch.setattr(data_manager, "save_data", failing_save)

    with pytest.raises(DataSaveError):
        workflow.propose_swap(shift.id, bob.id)

    assert not data_manager.get_shift_by_id(shift.id).has_pending_swap
    assert data_manager.get_notifications() == []

    monkeypatch.undo()
    assert workflow.propose_swap(shift.id, bob.id).shift.swap_state == PendingSwap(bob.id)
