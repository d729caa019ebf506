"""
Flask CLI command tests.
"""

import bcrypt

from app.models import Rental
from app.services import rental_service


def _balance(db_session, rental_id: int) -> int:
    db_session.expire_all()
    return db_session.get(Rental, rental_id).balance_cents


class TestRentalsCommands:

    def test_reconcile_dry_run_then_fix(self, app, db_session, rental):
        rental.balance_cents = 1
        db_session.commit()
        runner = app.test_cli_runner()

        dry = runner.invoke(args=["rentals", "reconcile", "--dry-run"])
        assert dry.exit_code == 0, dry.output
        assert f"WOULD FIX rental {rental.id}" in dry.output
        assert "balance 1 -> 74000" in dry.output
        assert _balance(db_session, rental.id) == 1

        fixed = runner.invoke(args=["rentals", "reconcile"])
        assert fixed.exit_code == 0, fixed.output
        assert f"FIXED rental {rental.id}" in fixed.output
        assert _balance(db_session, rental.id) == 74000

    def test_reconcile_single_rental(self, app, db_session, rental):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["rentals", "reconcile", "--rental-id", str(rental.id)])
        assert result.exit_code == 0, result.output
        assert "OK 0 rental(s) reconciled" in result.output

    def test_reconcile_deleted_rental_fails(self, app, db_session, rental):
        rental_service.delete_rental(rental.id)
        runner = app.test_cli_runner()
        result = runner.invoke(args=["rentals", "reconcile", "--rental-id", str(rental.id)])
        assert result.exit_code != 0
        assert "deleted" in result.output

    def test_debtors(self, app, db_session, rental):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["rentals", "debtors"])
        assert result.exit_code == 0, result.output
        assert "34 ABC 123" in result.output
        assert "₺740,00" in result.output

    def test_no_debtors(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["rentals", "debtors"])
        assert "No outstanding balances" in result.output


class TestSystemCommands:

    def test_init_db_is_idempotent(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0, result.output
        assert "Database schema ready" in result.output


class TestAuthCommands:

    def test_hash_password(self, app):
        result = app.test_cli_runner().invoke(args=["auth", "hash-password", "--password", "s3cret-pass"])
        assert result.exit_code == 0, result.output
        hashed = result.output.strip()
        assert bcrypt.checkpw(b"s3cret-pass", hashed.encode("utf-8"))

    def test_hash_password_too_short(self, app):
        result = app.test_cli_runner().invoke(args=["auth", "hash-password", "--password", "short"])
        assert result.exit_code != 0
