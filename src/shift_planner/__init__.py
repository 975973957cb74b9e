"""
Shift Planning System with Conflict Detection and Shift Swaps

A desktop application for planning worker shifts across departments and
machines, flagging double bookings, and handing shifts between workers
through an approve/reject swap workflow.
"""

__version__ = "1.0.0"
__author__ = "Shift Planner Team"
