"""Core business logic.

Modules:
- errors: Domain exception hierarchy
- schedule: Term calendars and booking date coverage
- catalog: Venues, terms, exercise types, instructors and sessions
- customers: Customer records, blocking, terminations, PAQ and credit
- enrollment: Fee quotes and enrollment creation
- payments: Receipts and payment processor webhook events
- cancellations: Booking and class cancellation requests and reviews
- attendance: Rosters, attendance marking and attendance summaries
- permissions: Permission catalog, staff roles and staff accounts
- auth: Sign-up, sign-in and bearer tokens
- storage: Local object storage with signed URLs
- reports: PDF and CSV exports
- notifications: Emailing lists and SMTP delivery
"""

__all__ = [
    "errors",
    "schedule",
    "catalog",
    "customers",
    "enrollment",
    "payments",
    "cancellations",
    "attendance",
    "permissions",
    "auth",
    "storage",
    "reports",
    "notifications",
]
