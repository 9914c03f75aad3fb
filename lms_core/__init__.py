"""
LMS client core: cache-aside sync, optimistic mutations and the
auth-scoped activity poller used by the student/faculty/admin portals.
"""

__version__ = "0.1.0"
