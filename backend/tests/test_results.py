"""
Tests for the ActionResult envelope used by transition routes.
"""

from hpledger.errors import OverpaymentError, ValidationError
from hpledger.results import ActionResult, run_action


class TestActionResult:

    def test_ok_carries_value(self):
        result = ActionResult.ok({"id": 1}, http_status=201)

        assert result.success
        assert result.value == {"id": 1}
        assert result.http_status == 201
        assert result.details == {}

    def test_fail_carries_code_field_and_status(self):
        exc = OverpaymentError("Too much", field="amount", details={"outstanding_cents": 500})

        result = ActionResult.fail(exc)

        assert not result.success
        assert result.code == "OVERPAYMENT"
        assert result.field == "amount"
        assert result.http_status == 409
        assert result.error_payload() == {
            "error": "Too much",
            "code": "OVERPAYMENT",
            "field": "amount",
            "details": {"outstanding_cents": 500},
        }

    def test_details_are_not_shared_between_results(self):
        first = ActionResult.ok(1)
        second = ActionResult.ok(2)

        first.details["x"] = 1

        assert second.details == {}


class TestRunAction:

    def test_ledger_error_is_folded(self, db_session):
        def _fails():
            raise ValidationError("Amount must be greater than zero", field="amount")

        result = run_action(_fails)

        assert not result.success
        assert result.code == "VALIDATION_ERROR"
        assert result.http_status == 400

    def test_success_passes_arguments_through(self, db_session):
        result = run_action(lambda a, b=0: a + b, 2, b=3)

        assert result.success
        assert result.value == 5
