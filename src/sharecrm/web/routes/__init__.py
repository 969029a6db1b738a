"""Route handlers for the HTTP API."""

from sharecrm.web.routes.health import router as health_router
from sharecrm.web.routes.auth import router as auth_router
from sharecrm.web.routes.public import router as public_router
from sharecrm.web.routes.portal import router as portal_router
from sharecrm.web.routes.instructor import router as instructor_router
from sharecrm.web.routes.customers import router as customers_router
from sharecrm.web.routes.customers import terminations_router, paq_router
from sharecrm.web.routes.catalog import (
    venues_router,
    terms_router,
    exercise_types_router,
    sessions_router,
    instructors_router,
)
from sharecrm.web.routes.enrollments import router as enrollments_router
from sharecrm.web.routes.cancellations import booking_router as booking_cancellations_router
from sharecrm.web.routes.cancellations import class_router as class_cancellations_router
from sharecrm.web.routes.attendance import router as attendance_router
from sharecrm.web.routes.reports import router as reports_router
from sharecrm.web.routes.reports import rolls_router as class_rolls_router
from sharecrm.web.routes.staff import (
    staff_router,
    roles_router,
    permissions_router,
    emailing_router,
)
from sharecrm.web.routes.payments import router as payments_router
from sharecrm.web.routes.files import router as files_router

__all__ = [
    "health_router",
    "auth_router",
    "public_router",
    "portal_router",
    "instructor_router",
    "customers_router",
    "terminations_router",
    "paq_router",
    "venues_router",
    "terms_router",
    "exercise_types_router",
    "sessions_router",
    "instructors_router",
    "enrollments_router",
    "booking_cancellations_router",
    "class_cancellations_router",
    "attendance_router",
    "reports_router",
    "class_rolls_router",
    "staff_router",
    "roles_router",
    "permissions_router",
    "emailing_router",
    "payments_router",
    "files_router",
]
