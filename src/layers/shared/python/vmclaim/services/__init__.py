"""Reconciliation and notification services."""

from vmclaim.services.email_service import EmailService
from vmclaim.services.notifier import LogNotifier, Notifier, SesNotifier, SmtpNotifier
from vmclaim.services.reconciler import Reconciler

__all__ = [
    "EmailService",
    "LogNotifier",
    "Notifier",
    "SesNotifier",
    "SmtpNotifier",
    "Reconciler",
]
