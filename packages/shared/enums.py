"""
Shared Enumerations.

Defines enums used across all packages for type safety and consistency.
"""

from enum import Enum


class NotificationReason(str, Enum):
    """Why GitHub delivered a notification to the user."""
    ASSIGN = "assign"
    AUTHOR = "author"
    COMMENT = "comment"
    INVITATION = "invitation"
    MANUAL = "manual"
    MENTION = "mention"
    REVIEW_REQUIRED = "review_required"
    SECURITY_ALERT = "security_alert"
    STATE_CHANGE = "state_change"
    SUBSCRIBED = "subscribed"
    TEAM_MENTION = "team_mention"


class SubjectType(str, Enum):
    """Kind of object a notification is about."""
    PULL_REQUEST = "PullRequest"
    ISSUE = "Issue"
