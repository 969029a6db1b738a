"""PDF and CSV exports.

Every report is built as a ReportTable (title, header lines, columns,
rows) and then rendered:
- PDF with PyMuPDF: A4 portrait, helvetica, repeated column header on
  each page and a page-number footer
- CSV with the csv module: UTF-8, header row first
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date

import fitz
import structlog

from sharecrm.core import attendance
from sharecrm.core.errors import NotFoundError, ValidationError
from sharecrm.core.storage import get_storage
from sharecrm.db import documents_repository as repo
from sharecrm.db.cancellations_repository import list_class_cancellations
from sharecrm.db.catalog_repository import get_session, get_term, list_sessions
from sharecrm.db.database import get_db
from sharecrm.db.enrollments_repository import (
    get_enrollment,
    list_bookings,
    list_bookings_for_sessions,
    list_payments,
)
from sharecrm.utils.validators import new_id

logger = structlog.get_logger(__name__)

FORMATS = ("pdf", "csv")
CONTENT_TYPES = {"pdf": "application/pdf", "csv": "text/csv; charset=utf-8"}

# A4 in points
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 40
ROW_HEIGHT = 16
FONT = "helv"
FONT_BOLD = "hebo"
FONT_SIZE = 9


@dataclass
class ReportTable:
    """Tabular report content, independent of output format."""

    title: str
    columns: list[str]
    rows: list[list[str]]
    header_lines: list[str] = field(default_factory=list)
    # Relative column widths; equal widths when empty
    widths: list[float] = field(default_factory=list)


@dataclass
class RenderedReport:
    filename: str
    content_type: str
    data: bytes


def _check_format(fmt: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValidationError("Format must be 'pdf' or 'csv'")
    return fmt


def render(table: ReportTable, fmt: str, basename: str) -> RenderedReport:
    fmt = _check_format(fmt)
    data = render_pdf(table) if fmt == "pdf" else render_csv(table)
    return RenderedReport(filename=f"{basename}.{fmt}", content_type=CONTENT_TYPES[fmt], data=data)


def render_csv(table: ReportTable) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(table.columns)
    writer.writerows(table.rows)
    return buffer.getvalue().encode("utf-8")


def _fit(text: str, width: float, fontname: str = FONT) -> str:
    """Truncate text with an ellipsis so it fits in ``width`` points."""
    if fitz.get_text_length(text, fontname=fontname, fontsize=FONT_SIZE) <= width:
        return text
    while text and fitz.get_text_length(text + "...", fontname=fontname, fontsize=FONT_SIZE) > width:
        text = text[:-1]
    return text + "..."


def render_pdf(table: ReportTable) -> bytes:
    doc = fitz.open()
    usable = PAGE_WIDTH - 2 * MARGIN
    weights = table.widths or [1.0] * len(table.columns)
    scale = usable / sum(weights)
    widths = [w * scale for w in weights]
    offsets = [MARGIN + sum(widths[:i]) for i in range(len(widths))]

    def new_page(first: bool) -> tuple[fitz.Page, float]:
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        y = MARGIN + 10
        if first:
            page.insert_text((MARGIN, y + 6), table.title, fontsize=16, fontname=FONT_BOLD)
            y += 28
            for line in table.header_lines:
                page.insert_text((MARGIN, y), line, fontsize=10, fontname=FONT)
                y += 14
            y += 8
        for x, width, name in zip(offsets, widths, table.columns):
            page.insert_text((x + 2, y), _fit(name, width - 4, FONT_BOLD), fontsize=FONT_SIZE, fontname=FONT_BOLD)
        page.draw_line((MARGIN, y + 4), (PAGE_WIDTH - MARGIN, y + 4), width=0.8)
        return page, y + ROW_HEIGHT

    page, y = new_page(first=True)
    for row in table.rows:
        if y > PAGE_HEIGHT - MARGIN - ROW_HEIGHT:
            page, y = new_page(first=False)
        for x, width, value in zip(offsets, widths, row):
            page.insert_text((x + 2, y), _fit(str(value), width - 4), fontsize=FONT_SIZE, fontname=FONT)
        page.draw_line((MARGIN, y + 4), (PAGE_WIDTH - MARGIN, y + 4), width=0.2, color=(0.7, 0.7, 0.7))
        y += ROW_HEIGHT

    if not table.rows:
        page.insert_text((MARGIN, y), "No records", fontsize=FONT_SIZE, fontname=FONT)

    total = doc.page_count
    for number, current in enumerate(doc, start=1):
        current.insert_text(
            (PAGE_WIDTH - MARGIN - 60, PAGE_HEIGHT - MARGIN / 2),
            f"Page {number} of {total}",
            fontsize=8,
            fontname=FONT,
        )

    data = doc.tobytes()
    doc.close()
    return data


# =============================================================================
# REPORTS
# =============================================================================


def class_roll(session_id: str, class_date: date, fmt: str = "pdf") -> tuple[RenderedReport, repo.ClassRollRecord]:
    """Printable roll for one dated class.

    The file is stored in the class-rolls bucket and a class_rolls row is
    recorded so staff can see which rolls were generated.
    """
    fmt = _check_format(fmt)
    entries = attendance.roster(session_id, class_date)
    with get_db() as conn:
        session = get_session(conn, session_id)
        term = get_term(conn, session.term_id)

    time_range = session.start_time + (f" - {session.end_time}" if session.end_time else "")
    table = ReportTable(
        title=f"Class Roll: {session.name}",
        header_lines=[
            f"Code: {session.code}    Date: {class_date.isoformat()} ({session.day_of_week})",
            f"Time: {time_range}    Venue: {session.venue_name}",
            f"Exercise type: {session.exercise_type_name or '-'}    Term: {term.label}",
        ],
        columns=["#", "Name", "Email", "Contact", "Enrollment Type", "Present"],
        widths=[0.4, 2.2, 2.8, 1.6, 1.4, 0.9],
        rows=[
            [str(i), e.customer_name, e.customer_email, e.contact_no or "", e.enrollment_type, ""]
            for i, e in enumerate(entries, start=1)
        ],
    )
    report = render(table, fmt, f"class-roll-{session.code}-{class_date.isoformat()}")

    path = get_storage().upload("class-rolls", report.filename, report.data, folder=session_id)
    roll_id = new_id()
    with get_db() as conn:
        repo.insert_class_roll(conn, roll_id, session_id, class_date, fmt, path)
        roll = repo.get_class_roll(conn, roll_id)
    logger.info("reports.class_roll", session_id=session_id, class_date=class_date.isoformat(), rows=len(entries))
    return report, roll


def attendance_report_document(
    start: date,
    end: date,
    session_id: str | None = None,
    fmt: str = "pdf",
) -> RenderedReport:
    summaries = attendance.attendance_report(start, end, session_id)
    records = [
        (record, summary)
        for summary in summaries
        for record in summary.records
    ]
    records.sort(key=lambda pair: (pair[0].class_date, pair[1].session.name, pair[1].booking.customer_name))
    table = ReportTable(
        title="Attendance Report",
        header_lines=[f"Period: {start.isoformat()} to {end.isoformat()}"],
        columns=[
            "Date",
            "Session",
            "Code",
            "Instructor",
            "Venue",
            "Customer Name",
            "Email",
            "Status",
            "Enrollment Type",
        ],
        widths=[1.2, 1.6, 0.9, 1.4, 1.3, 1.6, 2.0, 0.9, 1.1],
        rows=[
            [
                record.class_date.isoformat(),
                summary.session.name,
                summary.session.code,
                summary.session.instructor_name,
                summary.session.venue_name,
                summary.booking.customer_name,
                summary.booking.customer_email,
                record.status,
                summary.booking.enrollment_type,
            ]
            for record, summary in records
        ],
    )
    logger.info("reports.attendance", rows=len(table.rows))
    return render(table, fmt, f"attendance-{start.isoformat()}-{end.isoformat()}")


def class_cancellation_report(status: str | None = None, fmt: str = "pdf") -> RenderedReport:
    with get_db() as conn:
        cancellations = list_class_cancellations(conn, status)
    table = ReportTable(
        title="Class Cancellations",
        header_lines=[f"Status: {status or 'all'}"],
        columns=["Class", "Venue", "Instructor", "Date", "Reason", "Status"],
        widths=[1.6, 1.4, 1.4, 1.0, 2.6, 0.9],
        rows=[
            [c.session_name, c.venue_name, c.instructor_name, c.class_date.isoformat(), c.reason, c.status]
            for c in cancellations
        ],
    )
    logger.info("reports.class_cancellations", rows=len(table.rows))
    return render(table, fmt, "class-cancellations")


def participants_report(term_id: int | None = None, fmt: str = "pdf") -> RenderedReport:
    """Active bookings with their fee, optionally restricted to one term."""
    with get_db() as conn:
        if term_id is not None and get_term(conn, term_id) is None:
            raise NotFoundError("Term", term_id)
        sessions = list_sessions(conn, term_id=term_id)
        bookings = list_bookings_for_sessions(conn, [s.id for s in sessions])
    table = ReportTable(
        title="Participants",
        header_lines=[f"Term: {term_id if term_id is not None else 'all'}"],
        columns=["Customer", "Email", "Session", "Code", "Enrollment Type", "Fee"],
        widths=[1.8, 2.4, 1.8, 0.9, 1.2, 0.8],
        rows=[
            [b.customer_name, b.customer_email, b.session_name, b.session_code, b.enrollment_type, f"{b.fee_amount:.2f}"]
            for b in bookings
        ],
    )
    logger.info("reports.participants", rows=len(table.rows))
    return render(table, fmt, "participants")


def enrollment_receipt(enrollment_id: str, fmt: str = "pdf") -> RenderedReport:
    """Receipt for the latest completed payment of an enrollment.

    Header lines carry the customer and payment details; one row per
    booked session plus a closing total row.

    Raises:
        NotFoundError: If the enrollment does not exist or has no
            completed payment
    """
    fmt = _check_format(fmt)
    with get_db() as conn:
        enrollment = get_enrollment(conn, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        completed = [p for p in list_payments(conn, enrollment_id) if p.payment_status == "completed"]
        if not completed:
            raise NotFoundError("Completed payment for enrollment", enrollment_id)
        bookings = list_bookings(conn, enrollment_id)
        sessions = {b.session_id: get_session(conn, b.session_id) for b in bookings}

    payment = completed[-1]
    customer = bookings[0] if bookings else None
    header_lines = [f"Receipt for: {enrollment.customer_name}"]
    if customer is not None:
        header_lines.append(f"Email: {customer.customer_email}")
        if customer.customer_contact:
            header_lines.append(f"Contact: {customer.customer_contact}")
    header_lines += [
        f"Receipt number: {payment.receipt_number}",
        f"Payment method: {payment.payment_method}",
        f"Payment date: {(payment.payment_date or '')[:10] or '-'}",
    ]

    rows = []
    for booking in bookings:
        session = sessions[booking.session_id]
        if booking.enrollment_type == "trial":
            kind = f"Trial {booking.trial_date.isoformat() if booking.trial_date else ''}".strip()
        elif booking.enrollment_type == "partial":
            kind = f"Partial ({len(booking.partial_dates)} classes)"
        else:
            kind = "Full"
        rows.append(
            [
                booking.session_name,
                kind,
                f"{session.day_of_week} at {session.start_time}",
                session.venue_name,
                f"{booking.fee_amount:.2f}",
            ]
        )
    rows.append(["Total", "", "", "", f"{payment.amount:.2f}"])

    table = ReportTable(
        title="Payment Receipt",
        header_lines=header_lines,
        columns=["Session", "Type", "Schedule", "Venue", "Amount"],
        widths=[2.0, 1.4, 1.6, 1.6, 0.9],
        rows=rows,
    )
    logger.info("reports.receipt", enrollment_id=enrollment_id, receipt=payment.receipt_number)
    return render(table, fmt, f"receipt-{payment.receipt_number}")


def list_class_rolls(session_id: str | None = None) -> list[repo.ClassRollRecord]:
    with get_db() as conn:
        return repo.list_class_rolls(conn, session_id)


def mark_roll_downloaded(roll_id: str) -> repo.ClassRollRecord:
    with get_db() as conn:
        if not repo.mark_roll_downloaded(conn, roll_id):
            raise NotFoundError("Class roll", roll_id)
        return repo.get_class_roll(conn, roll_id)


def download_class_roll(roll_id: str) -> RenderedReport:
    """Read a stored roll back and mark it downloaded."""
    roll = mark_roll_downloaded(roll_id)
    if not roll.file_path:
        raise NotFoundError("Class roll file", roll_id)
    data = get_storage().open("class-rolls", roll.file_path)
    return RenderedReport(
        filename=roll.file_path.rsplit("/", 1)[-1],
        content_type=CONTENT_TYPES[roll.format],
        data=data,
    )
