"""Tests for rs_common.enums: values must match DB CHECK constraints."""

from src.rs_common.enums import LedgerSource, PaymentFlowStatus, PaymentStatus, WebhookAction


class TestAllEnumsAreStr:
    def test_ledger_source_is_str(self) -> None:
        assert isinstance(LedgerSource.BOOKING, str)
        assert LedgerSource.BOOKING == "booking"

    def test_payment_status_is_str(self) -> None:
        assert PaymentStatus.CONFIRMED == "CONFIRMED"


class TestValues:
    def test_ledger_sources(self) -> None:
        assert {s.value for s in LedgerSource} == {"purchase", "admin", "booking", "unbooking"}

    def test_flow_statuses(self) -> None:
        assert {s.value for s in PaymentFlowStatus} == {"CREATED", "COMPLETED"}

    def test_payment_statuses(self) -> None:
        assert {s.value for s in PaymentStatus} == {"PENDING", "CONFIRMED", "FAILED"}

    def test_webhook_actions(self) -> None:
        assert {a.value for a in WebhookAction} == {"confirmed", "paid_out", "failed", "cancelled"}
