"""Shared record-level enums."""

from enum import Enum


class Visibility(str, Enum):
    """Who can read a contact, deal or task inside the organization."""

    ORG = "org"  # Everyone in the organization
    PRIVATE = "private"  # Owner, assignee and explicit visible_to grants
