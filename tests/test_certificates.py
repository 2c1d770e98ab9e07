from datetime import datetime, timezone
from decimal import Decimal

from conftest import make_application
from app.core.settings import settings
from app.models import Payment
from app.services import certificates


def test_certificate_number_uses_prefix_position_year_and_suffix():
    application = make_application(position_type="STRUCTURAL_ENGINEER")
    issued_at = datetime(2027, 1, 5, tzinfo=timezone.utc)

    number = certificates.certificate_number_for(application, issued_at)

    assert number == "PMC/LIC/STRUCTURAL_ENGINEER/2027/1A2B3C4D"


def test_certificate_prefix_is_configurable(monkeypatch):
    monkeypatch.setattr(settings, "certificate_number_prefix", "PUNE/REG")
    application = make_application()

    number = certificates.certificate_number_for(application, datetime(2026, 3, 1, tzinfo=timezone.utc))

    assert number.startswith("PUNE/REG/ARCHITECT/2026/")


def test_position_titles():
    assert certificates.position_title("SUPERVISOR1") == "Supervisor 1"
    assert certificates.position_title("TOWN_PLANNER") == "Town Planner"


def test_recommendation_form_is_pdf():
    content = certificates.render_recommendation_form(make_application(address=None, qualification=None))

    assert content.startswith(b"%PDF")
    assert len(content) > 500


def test_licence_certificate_escapes_applicant_name():
    application = make_application(full_name="R & D <Associates>")

    content = certificates.render_licence_certificate(
        application,
        "PMC/LIC/ARCHITECT/2026/1A2B3C4D",
        issued_at=datetime(2026, 10, 19, tzinfo=timezone.utc),
    )

    assert content.startswith(b"%PDF")


def test_amount_in_words_uses_indian_numbering():
    assert certificates.amount_in_words(Decimal("3000.00")) == "Rupees Three Thousand Only"
    assert certificates.amount_in_words(Decimal("250000")) == "Rupees Two Lakh Fifty Thousand Only"
    assert certificates.amount_in_words(Decimal("12345678.05")) == (
        "Rupees One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight and Five Paise Only"
    )
    assert certificates.amount_in_words(Decimal("0.50")) == "Rupees Zero and Fifty Paise Only"


def test_challan_number_uses_payment_date_and_reference():
    payment = Payment(payment_id="PMC261019ABCDEF012345", amount=Decimal("3000.00"), currency="INR")

    number = certificates.challan_number_for(payment, datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))

    assert number == "CH20261019EF012345"


def test_payment_challan_is_pdf():
    application = make_application(full_name="R & D <Associates>")
    payment = Payment(
        payment_id="PMC261019ABCDEF012345",
        transaction_id=None,
        amount=Decimal("3000.00"),
        currency="INR",
        paid_at=datetime(2026, 10, 19, tzinfo=timezone.utc),
    )

    content = certificates.render_payment_challan(application, payment, "CH20261019EF012345")

    assert content.startswith(b"%PDF")
