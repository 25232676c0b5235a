"""Predefined automated campaigns an admin can start from."""

from __future__ import annotations

import copy
from typing import Any

CAMPAIGN_TEMPLATES: dict[str, dict[str, Any]] = {
    "welcome": {
        "name": "Welcome New Students",
        "type": "welcome",
        "trigger": "automated",
        "message_template": {
            "text": (
                "Welcome to the Academy, {studentName}!\n\n"
                "We're excited to have you join our {sportName} program. Your journey with us starts now!\n\n"
                "Batch: {batchName}\n"
                "Get ready for an amazing sports experience!"
            ),
            "variables": ["studentName", "sportName", "batchName"],
        },
        "automation_rules": {
            "type": "welcome_message",
            "conditions": {"triggerOnEnrollment": True},
            "actions": {"sendImmediately": True},
        },
    },
    "fee_reminder": {
        "name": "Fee Payment Reminder",
        "type": "fee_reminder",
        "trigger": "automated",
        "message_template": {
            "text": (
                "Fee Reminder\n\n"
                "Hi {studentName},\n\n"
                "This is a friendly reminder that your fee payment of Rs.{amount} is due on {dueDate}.\n\n"
                "Please make your payment at the earliest to continue your training without interruption."
            ),
            "variables": ["studentName", "amount", "dueDate"],
        },
        "automation_rules": {
            "type": "fee_reminder",
            "conditions": {"daysBefore": 3},
            "actions": {"sendDaily": True},
        },
    },
    "attendance_followup": {
        "name": "Attendance Follow-up",
        "type": "attendance_followup",
        "trigger": "automated",
        "message_template": {
            "text": (
                "Attendance Alert\n\n"
                "Hi {studentName},\n\n"
                "We've noticed you've been absent for {absentDays} days from your {sportName} training.\n\n"
                "Regular attendance is crucial for your progress. Please contact us if you need any assistance."
            ),
            "variables": ["studentName", "absentDays", "sportName"],
        },
        "automation_rules": {
            "type": "attendance_followup",
            "conditions": {"consecutiveAbsences": 3},
            "actions": {"sendWeekly": True},
        },
    },
    "birthday_wishes": {
        "name": "Birthday Wishes",
        "type": "birthday",
        "trigger": "automated",
        "message_template": {
            "text": (
                "Happy Birthday {studentName}!\n\n"
                "Wishing you a wonderful {age}th birthday filled with joy, success, and great achievements!"
            ),
            "variables": ["studentName", "age"],
        },
        "automation_rules": {
            "type": "birthday_wishes",
            "conditions": {"sendOnBirthday": True},
            "actions": {"sendAnnually": True},
        },
    },
}


def build_campaign_from_template(key: str, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Campaign creation data for a predefined template, with admin overrides applied.

    New campaigns start in draft; the admin activates them explicitly.
    """
    if key not in CAMPAIGN_TEMPLATES:
        raise KeyError(key)
    data = copy.deepcopy(CAMPAIGN_TEMPLATES[key])
    data.setdefault("status", "draft")
    data.update(overrides or {})
    return data
