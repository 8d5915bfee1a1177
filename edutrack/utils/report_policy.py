"""Triage and access rules for infrastructure reports.

Everything here is a pure function of its arguments so it can be exercised
without an application context. ``viewer``/``user`` arguments only need
``id``, ``role`` and ``school_id`` attributes; ``None`` means an
unauthenticated caller.
"""
from collections import namedtuple
from datetime import datetime, timedelta
from typing import Optional, Tuple

PRIORITY_SCORES = {'low': 10, 'medium': 30, 'high': 60, 'urgent': 90}
DEFAULT_PRIORITY_SCORE = 30

SEVERITY_SCORES = {
    'safety': 20,
    'infrastructure': 15,
    'sanitation': 15,
    'furniture': 10,
    'maintenance': 8,
    'resources': 5,
}
DEFAULT_SEVERITY_SCORE = 5

MAX_URGENCY_SCORE = 100

PRIVILEGED_ROLES = ('admin', 'government')
OPEN_TIERS = ('public', 'government')

EDIT_WINDOW = timedelta(hours=24)

PROCESSED_MESSAGE = 'Cannot modify report that has been processed'
EXPIRED_MESSAGE = 'Cannot modify report after 24 hours'
DENIED_MESSAGE = 'Permission denied'


def students_affected_bonus(students_affected: Optional[int]) -> int:
    # A missing or zero head count adds nothing
    if not students_affected:
        return 0
    if students_affected > 500:
        return 20
    if students_affected > 200:
        return 15
    if students_affected > 100:
        return 10
    return 5


def calculate_urgency_score(priority: Optional[str], students_affected: Optional[int],
                            issue_type: Optional[str]) -> int:
    """Derive the 0-100 triage score for a report."""
    score = PRIORITY_SCORES.get(priority, DEFAULT_PRIORITY_SCORE)
    score += students_affected_bonus(students_affected)
    score += SEVERITY_SCORES.get(issue_type, DEFAULT_SEVERITY_SCORE)
    return max(0, min(score, MAX_URGENCY_SCORE))


VisibilityScope = namedtuple('VisibilityScope', ['unrestricted', 'tiers', 'school_id'])


def _role(viewer):
    return getattr(viewer, 'role', None) if viewer is not None else None


def visibility_scope(viewer) -> VisibilityScope:
    """Which reports a caller may list.

    A report is visible when the scope is unrestricted, when its visibility
    is one of ``tiers``, or when it belongs to ``school_id``.
    """
    role = _role(viewer)
    if role in PRIVILEGED_ROLES:
        return VisibilityScope(True, (), None)
    school_id = getattr(viewer, 'school_id', None)
    if role == 'teacher' and school_id:
        return VisibilityScope(False, ('public',), school_id)
    return VisibilityScope(False, OPEN_TIERS, None)


def can_view_report(viewer, report) -> bool:
    scope = visibility_scope(viewer)
    if scope.unrestricted or report.visibility in scope.tiers:
        return True
    if scope.school_id and report.school_id == scope.school_id:
        return True
    # The named reporter can always open their own report
    if viewer is not None and not report.is_anonymous and report.reporter_id:
        return report.reporter_id == getattr(viewer, 'id', None)
    return False


def can_see_internal_comments(viewer) -> bool:
    return _role(viewer) in PRIVILEGED_ROLES


def check_report_modification(user, report, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    """Return ``(allowed, reason)`` for an edit of ``report`` by ``user``."""
    if _role(user) in PRIVILEGED_ROLES:
        return True, None

    if user is None or not report.reporter_id or report.reporter_id != getattr(user, 'id', None):
        return False, DENIED_MESSAGE

    if report.status != 'reported':
        return False, PROCESSED_MESSAGE

    now = now or datetime.utcnow()
    if report.created_at and now - report.created_at > EDIT_WINDOW:
        return False, EXPIRED_MESSAGE

    return True, None
