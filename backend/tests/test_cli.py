# Overview: Pytest coverage for the ledger CLI group.

from stockledger.models import Product, Sale, StockIn


def test_seed_demo_then_audit(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["ledger", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "PASS Sale SO-000001" in result.output
    assert db_session.query(Product).count() == 2
    assert db_session.query(StockIn).count() == 1
    assert db_session.query(Sale).count() == 1

    again = runner.invoke(args=["ledger", "seed-demo"])
    assert "skipping" in again.output

    audit = runner.invoke(args=["ledger", "check-invariants"])
    assert audit.exit_code == 0
    assert "consistent" in audit.output


def test_audit_reports_tampering(app, db_session):
    sale = Sale(document_number="SO-TAMPER", total_amount=500, amount_paid=0, payment_status="PAID")
    db_session.add(sale)
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["ledger", "check-invariants"])

    assert result.exit_code == 1
    assert "payment_status_derived" in result.output
    assert "total_matches_lines" in result.output
