"""Approval policy for governed edits."""

from .policy import ApprovalPolicy, ApprovalSettings, SettingsApprovalPolicy

__all__ = ["ApprovalPolicy", "ApprovalSettings", "SettingsApprovalPolicy"]
