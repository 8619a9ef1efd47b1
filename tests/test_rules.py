import pytest

from shopdesk.domain import rules
from shopdesk.domain.address import PlainAddress, StructuredAddress, format_address

class TestMoneyRules:
    """Totals, balances and payment status"""

    def test_subtotal_sums_line_totals(self):
        assert rules.subtotal_of([(2, 50.0), (1, 100.0)]) == 200.0

    def test_total_includes_courier_charge(self):
        assert rules.total_amount(200.0, 20.0) == 220.0
        assert rules.total_amount(200.0, None) == 200.0

    def test_due_is_raw_difference_at_creation(self):
        assert rules.due_amount(220.0, 250.0, clamp=False) == -30.0

    def test_due_is_clamped_on_edit(self):
        assert rules.due_amount(220.0, 250.0, clamp=True) == 0.0
        assert rules.due_amount(220.0, 150.0, clamp=True) == 70.0

    @pytest.mark.parametrize("total,paid,due,expected", [
        (220.0, 0.0, 220.0, "due"),
        (220.0, 150.0, 70.0, "partial"),
        (220.0, 220.0, 0.0, "paid"),
        (220.0, 250.0, -30.0, "paid"),
        (0.0, 0.0, 0.0, "due"),
    ])
    def test_payment_status(self, total, paid, due, expected):
        assert rules.payment_status(total, paid, due) == expected

    def test_round_half_up(self):
        assert rules.round_half_up(220.5) == 221
        assert rules.round_half_up(220.49) == 220
        assert rules.round_half_up(2.5) == 3

class TestFormatAddress:
    def test_plain_text_passes_through(self):
        assert format_address(PlainAddress("House 5, Mirpur, Dhaka")) == "House 5, Mirpur, Dhaka"

    def test_structured_parts_are_joined_skipping_blanks(self):
        address = StructuredAddress(street="House 12", city="Dhaka", state="", zip_code="1207")
        assert format_address(address) == "House 12, Dhaka, 1207"

    def test_missing_address(self):
        assert format_address(None) == "Address not provided"
        assert format_address(StructuredAddress()) == "Address not provided"

    def test_plain_text_is_never_replaced(self):
        assert format_address(PlainAddress("")) == ""
        assert format_address(PlainAddress(" Road 5 ")) == " Road 5 "
