"""Tests for the sharecrm command line."""

from datetime import date

from typer.testing import CliRunner

from sharecrm.cli.commands import app
from sharecrm.core import auth, enrollment
from sharecrm.core.enrollment import EnrollmentLine

runner = CliRunner()


class TestSetupCommands:
    """Tests for init-db, seed-permissions and create-admin."""

    def test_init_db(self, tmp_path):
        target = tmp_path / "cli" / "crm.db"

        result = runner.invoke(app, ["init-db", "--db", str(target)])

        assert result.exit_code == 0
        assert "Database ready" in result.stdout
        assert target.exists()

    def test_seed_permissions_is_idempotent(self):
        result = runner.invoke(app, ["seed-permissions"])

        assert result.exit_code == 0
        assert "0 permission(s) added" in result.stdout
        assert "Super Admin" in result.stdout

    def test_create_admin_with_password(self):
        result = runner.invoke(app, ["create-admin", "boss@example.com", "--name", "Bo Boss", "-p", "boss-pass"])

        assert result.exit_code == 0
        assert "Staff account created" in result.stdout
        assert auth.sign_in("boss@example.com", "boss-pass").user.role == "admin"

    def test_create_admin_generates_password(self):
        result = runner.invoke(app, ["create-admin", "boss@example.com", "--name", "Bo Boss"])

        assert result.exit_code == 0
        assert "password:" in result.stdout

    def test_create_admin_duplicate(self):
        runner.invoke(app, ["create-admin", "boss@example.com", "--name", "Bo Boss"])

        result = runner.invoke(app, ["create-admin", "boss@example.com", "--name", "Bo Boss"])

        assert result.exit_code == 1
        assert "already exists" in result.stdout


class TestListCommands:
    """Tests for list-customers and list-sessions."""

    def test_list_customers(self, customer):
        result = runner.invoke(app, ["list-customers"])

        assert result.exit_code == 0
        assert "Jane Doe" in result.stdout
        assert "1 customer(s)" in result.stdout

    def test_list_customers_empty(self):
        result = runner.invoke(app, ["list-customers", "--search", "nobody"])

        assert "No customers found" in result.stdout

    def test_list_sessions_for_term(self, session, term):
        result = runner.invoke(app, ["list-sessions", "--term", str(term.id)])

        assert result.exit_code == 0
        assert "STR01" in result.stdout
        assert "100.00" in result.stdout

    def test_list_sessions_unknown_term(self):
        result = runner.invoke(app, ["list-sessions", "--term", "999"])

        assert result.exit_code == 1


class TestExportReport:
    """Tests for export-report."""

    def test_participants_csv(self, tmp_path, customer, session, term):
        enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=date(2029, 12, 1)
        )

        result = runner.invoke(
            app, ["export-report", "participants", "-f", "csv", "-o", str(tmp_path), "--term", str(term.id)]
        )

        assert result.exit_code == 0
        written = (tmp_path / "participants.csv").read_text()
        assert "Jane Doe" in written

    def test_class_roll_pdf(self, tmp_path, session):
        out = tmp_path / "roll.pdf"

        result = runner.invoke(
            app, ["export-report", "class-roll", "--session", session.id, "--date", "2030-01-07", "-o", str(out)]
        )

        assert result.exit_code == 0
        assert out.read_bytes().startswith(b"%PDF")

    def test_attendance_requires_period(self):
        result = runner.invoke(app, ["export-report", "attendance"])

        assert result.exit_code == 1
        assert "--start and --end" in result.stdout

    def test_bad_date(self):
        result = runner.invoke(app, ["export-report", "attendance", "--start", "07/01/2030", "--end", "2030-02-01"])

        assert result.exit_code == 1
        assert "YYYY-MM-DD" in result.stdout

    def test_unknown_kind(self):
        result = runner.invoke(app, ["export-report", "payroll"])

        assert result.exit_code == 1
        assert "Unknown report" in result.stdout

    def test_receipt_requires_enrollment(self):
        result = runner.invoke(app, ["export-report", "receipt"])

        assert result.exit_code == 1
        assert "--enrollment is required" in result.stdout

    def test_receipt_csv(self, tmp_path, customer, session):
        outcome = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=date(2029, 12, 1)
        )

        result = runner.invoke(
            app,
            ["export-report", "receipt", "-f", "csv", "-o", str(tmp_path), "--enrollment", outcome.detail.enrollment.id],
        )

        assert result.exit_code == 0
        receipt_number = outcome.detail.payments[0].receipt_number
        assert "Total" in (tmp_path / f"receipt-{receipt_number}.csv").read_text()
