"""
Swap Workflow for Shift Planning System

Drives shift-ownership transfer between two workers: a proposal puts the
shift in a pending state and notifies the target, a response approves or
rejects it and leaves the notification trail.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Any, Iterable, Union
import logging

from .data_manager import (
    DataManager, DataValidationError, InvalidStateError, NotFoundError,
    Notification, PendingSwap, Shift, SwapMetadata, IDLE,
    SwapApprovedNotification, SwapRejectedNotification, SwapRequestNotification,
    new_id, utc_timestamp
)

logger = logging.getLogger(__name__)


class SwapDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class SwapProposal:
    """Result of proposing a swap"""
    shift: Shift
    notification: Notification

    def to_dict(self) -> Dict[str, Any]:
        return {"shift": self.shift.to_dict(), "notification": self.notification.to_dict()}


@dataclass
class SwapResolution:
    """Result of responding to a swap: the shift and every notification touched"""
    updated_shift: Shift
    updated_notifications: List[Notification]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updatedShift": self.updated_shift.to_dict(),
            "updatedNotifications": [n.to_dict() for n in self.updated_notifications]
        }


class SwapWorkflow:
    """Swap proposals, responses and notification housekeeping"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager

    def propose_swap(self, shift_id: str, target_worker_id: str) -> SwapProposal:
        """Offer shift_id to target_worker_id"""
        with self.data_manager.transaction():
            shift = self.data_manager.get_shift_by_id(shift_id)
            if shift is None:
                raise NotFoundError(f"Shift {shift_id} not found")
            if shift.has_pending_swap:
                raise InvalidStateError(f"Shift {shift_id} already has a pending swap request")

            original_worker = self.data_manager.get_worker_by_id(shift.worker_id)
            target_worker = self.data_manager.get_worker_by_id(target_worker_id)
            if original_worker is None or target_worker is None:
                raise NotFoundError("Worker not found")
            if original_worker.id == target_worker.id:
                raise DataValidationError("A shift cannot be swapped with its own worker")

            updated_shift = replace(shift, swap_state=PendingSwap(target_worker.id))
            notification = SwapRequestNotification(
                id=new_id("n"),
                message=f"{original_worker.name} proposed a shift swap to {target_worker.name}",
                timestamp=utc_timestamp(),
                read=False,
                metadata=SwapMetadata(
                    shift_id=shift.id,
                    original_worker_id=original_worker.id,
                    target_worker_id=target_worker.id
                )
            )
            self.data_manager.replace_shift(updated_shift)
            self.data_manager.append_notification(notification)

        logger.info(f"Swap proposed for shift {shift_id}: {original_worker.id} -> {target_worker.id}")
        return SwapProposal(shift=updated_shift, notification=notification)

    def respond_to_swap(self, notification_id: str,
                        decision: Union[SwapDecision, str]) -> SwapResolution:
        """
        Approve or reject the swap behind a swap_request notification.

        Both outcomes mark the request read and clear the pending state.
        Approval hands the shift to the target worker and emits two
        notifications; rejection emits one. Every precondition is checked
        before the first write.
        """
        try:
            decision = SwapDecision(decision)
        except ValueError:
            raise DataValidationError(f"Invalid swap decision '{decision}', expected approved or rejected")

        with self.data_manager.transaction():
            request = self.data_manager.get_notification_by_id(notification_id)
            if request is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            if not isinstance(request, SwapRequestNotification):
                raise InvalidStateError(f"Notification {notification_id} is not a swap request")

            metadata = request.metadata
            shift = self.data_manager.get_shift_by_id(metadata.shift_id)
            if shift is None:
                raise NotFoundError(f"Associated shift {metadata.shift_id} not found")
            if shift.swap_state != PendingSwap(metadata.target_worker_id):
                raise InvalidStateError(f"Swap request {notification_id} has already been resolved")

            original_worker = self.data_manager.get_worker_by_id(metadata.original_worker_id)
            target_worker = self.data_manager.get_worker_by_id(metadata.target_worker_id)
            if target_worker is None:
                raise NotFoundError(f"Worker {metadata.target_worker_id} not found")
            original_name = original_worker.name if original_worker else "the original worker"

            read_request = replace(request, read=True)
            if decision is SwapDecision.APPROVED:
                updated_shift = replace(shift, worker_id=target_worker.id, swap_state=IDLE)
                created = [
                    SwapApprovedNotification(
                        id=new_id("n"),
                        message=f"Your swap request to {target_worker.name} was approved.",
                        timestamp=utc_timestamp(),
                        read=False,
                        metadata=metadata
                    ),
                    SwapApprovedNotification(
                        id=new_id("n"),
                        message=f"You accepted the swap with {original_name}. The shift is now yours.",
                        timestamp=utc_timestamp(),
                        read=False,
                        metadata=metadata
                    ),
                ]
            else:
                updated_shift = replace(shift, swap_state=IDLE)
                created = [
                    SwapRejectedNotification(
                        id=new_id("n"),
                        message=f"Your swap request to {target_worker.name} was rejected.",
                        timestamp=utc_timestamp(),
                        read=False,
                        metadata=metadata
                    )
                ]

            self.data_manager.update_notification(read_request)
            self.data_manager.replace_shift(updated_shift)
            for notification in created:
                self.data_manager.append_notification(notification)

        logger.info(f"Swap for shift {shift.id} {decision.value}")
        return SwapResolution(updated_shift=updated_shift, updated_notifications=[read_request] + created)

    def mark_as_read(self, notification_ids: Iterable[str]) -> List[Notification]:
        """Mark the given notifications read; unknown ids are ignored"""
        wanted = set(notification_ids)
        updated = []
        with self.data_manager.transaction():
            for notification in self.data_manager.get_notifications():
                if notification.id in wanted:
                    read_notification = replace(notification, read=True)
                    self.data_manager.update_notification(read_notification)
                    updated.append(read_notification)
        return updated

    def delete_notification(self, notification_id: str):
        self.data_manager.delete_notification(notification_id)
        logger.info(f"Deleted notification {notification_id}")
