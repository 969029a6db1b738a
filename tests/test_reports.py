"""Tests for CSV/PDF report rendering and class rolls."""

import csv
import io
from datetime import date

import fitz
import pytest

from sharecrm.core import attendance, cancellations, enrollment, reports
from sharecrm.core.enrollment import EnrollmentLine
from sharecrm.core.errors import NotFoundError, ValidationError

BEFORE_TERM = date(2029, 12, 1)
FIRST_CLASS = date(2030, 1, 7)


def _rows(report):
    return list(csv.reader(io.StringIO(report.data.decode("utf-8"))))


@pytest.fixture
def booking(customer, session):
    outcome = enrollment.create_direct_enrollment(
        customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
    )
    return outcome.detail.bookings[0]


class TestRender:
    """Tests for reports.render."""

    def test_csv_has_header_and_rows(self):
        table = reports.ReportTable(title="T", columns=["A", "B"], rows=[["1", "x,y"]])

        report = reports.render(table, "csv", "sample")

        assert report.filename == "sample.csv"
        assert report.content_type.startswith("text/csv")
        assert _rows(report) == [["A", "B"], ["1", "x,y"]]

    def test_pdf_is_readable(self):
        table = reports.ReportTable(
            title="Sample Report",
            columns=["Name"],
            rows=[[f"Customer {i}"] for i in range(80)],
        )

        report = reports.render(table, "PDF", "sample")

        assert report.data.startswith(b"%PDF")
        with fitz.open(stream=report.data, filetype="pdf") as doc:
            assert doc.page_count > 1
            assert "Sample Report" in doc[0].get_text()

    def test_empty_pdf_says_no_records(self):
        report = reports.render(reports.ReportTable(title="Empty", columns=["A"], rows=[]), "pdf", "empty")

        with fitz.open(stream=report.data, filetype="pdf") as doc:
            assert "No records" in doc[0].get_text()

    def test_unknown_format(self):
        with pytest.raises(ValidationError, match="Format"):
            reports.render(reports.ReportTable(title="T", columns=["A"], rows=[]), "xlsx", "sample")


class TestReports:
    """Tests for the report builders."""

    def test_attendance_csv(self, session, booking):
        attendance.mark_attendance(booking.id, FIRST_CLASS, "present", None)

        report = reports.attendance_report_document(FIRST_CLASS, date(2030, 1, 31), fmt="csv")

        rows = _rows(report)
        assert rows[0][0] == "Date"
        assert rows[1][0] == "2030-01-07"
        assert rows[1][5] == "Jane Doe"
        assert rows[1][7] == "present"
        assert report.filename == "attendance-2030-01-07-2030-01-31.csv"

    def test_class_cancellations_csv(self, session, instructor):
        cancellations.request_class_cancellation(instructor.id, session.id, [FIRST_CLASS], "Hall closed")

        rows = _rows(reports.class_cancellation_report("pending", "csv"))

        assert len(rows) == 2
        assert rows[1][3] == "2030-01-07"
        assert rows[1][4] == "Hall closed"
        assert len(_rows(reports.class_cancellation_report("accepted", "csv"))) == 1

    def test_participants_csv(self, term, booking):
        rows = _rows(reports.participants_report(term.id, "csv"))

        assert rows[1][0] == "Jane Doe"
        assert rows[1][-1] == "100.00"

    def test_participants_unknown_term(self):
        with pytest.raises(NotFoundError):
            reports.participants_report(999, "csv")


class TestClassRolls:
    """Tests for stored class rolls."""

    def test_roll_stored_and_downloadable(self, session, booking):
        report, roll = reports.class_roll(session.id, FIRST_CLASS, "csv")

        assert roll.session_id == session.id
        assert roll.downloaded_at is None
        assert _rows(report)[1][1] == "Jane Doe"
        assert [r.id for r in reports.list_class_rolls(session.id)] == [roll.id]

        downloaded = reports.download_class_roll(roll.id)

        assert downloaded.data == report.data
        assert downloaded.filename == report.filename
        assert reports.list_class_rolls()[0].downloaded_at is not None

    def test_roll_for_non_class_date(self, session):
        with pytest.raises(ValidationError):
            reports.class_roll(session.id, date(2030, 1, 9))

    def test_unknown_roll(self):
        with pytest.raises(NotFoundError):
            reports.download_class_roll("missing")

    def test_roll_header_names_term(self, session, booking):
        report, _ = reports.class_roll(session.id, FIRST_CLASS, "pdf")

        with fitz.open(stream=report.data, filetype="pdf") as doc:
            assert "Term 1 2030" in doc[0].get_text()


class TestReceipts:
    """Tests for enrollment_receipt."""

    def test_receipt_csv_lists_sessions_and_total(self, session, booking):
        detail = enrollment.get_enrollment(booking.enrollment_id)
        receipt_number = detail.payments[0].receipt_number

        report = reports.enrollment_receipt(booking.enrollment_id, "csv")

        rows = _rows(report)
        assert report.filename == f"receipt-{receipt_number}.csv"
        assert rows[0] == ["Session", "Type", "Schedule", "Venue", "Amount"]
        assert rows[1][:3] == [session.name, "Full", "Monday at 09:00"]
        assert rows[-1] == ["Total", "", "", "", "100.00"]

    def test_receipt_pdf_carries_payment_details(self, booking):
        receipt_number = enrollment.get_enrollment(booking.enrollment_id).payments[0].receipt_number

        report = reports.enrollment_receipt(booking.enrollment_id)

        with fitz.open(stream=report.data, filetype="pdf") as doc:
            text = doc[0].get_text()
        assert "Payment Receipt" in text
        assert f"Receipt number: {receipt_number}" in text
        assert "Receipt for: Jane Doe" in text
        assert "Payment method: cash" in text

    def test_unpaid_enrollment_has_no_receipt(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )

        with pytest.raises(NotFoundError, match="Completed payment"):
            reports.enrollment_receipt(outcome.detail.enrollment.id)

    def test_unknown_enrollment(self):
        with pytest.raises(NotFoundError):
            reports.enrollment_receipt("missing")
