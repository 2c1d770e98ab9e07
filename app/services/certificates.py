"""PDF rendering for the recommendation form, the fee challan and the licence certificate."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.settings import settings
from app.schemas.application import PositionType

POSITION_TITLES = {
    PositionType.ARCHITECT.value: "Architect",
    PositionType.LICENCE_ENGINEER.value: "Licence Engineer",
    PositionType.STRUCTURAL_ENGINEER.value: "Structural Engineer",
    PositionType.SUPERVISOR1.value: "Supervisor 1",
    PositionType.SUPERVISOR2.value: "Supervisor 2",
}

_TABLE_STYLE = TableStyle(
    [
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 0), (-1, -1), [colors.whitesmoke, colors.white]),
    ]
)


def position_title(position_type: str) -> str:
    return POSITION_TITLES.get(position_type, position_type.replace("_", " ").title())


def certificate_number_for(application, issued_at: datetime | None = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    suffix = application.application_number.rsplit("-", 1)[-1]
    return f"{settings.certificate_number_prefix}/{application.position_type}/{issued_at:%Y}/{suffix}"


_ONES = (
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
)
_TENS = ("", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety")
# Indian numbering: crore (10^7), lakh (10^5), thousand, hundred.
_SCALES = ((10_000_000, "Crore"), (100_000, "Lakh"), (1_000, "Thousand"), (100, "Hundred"))


def _below_hundred(number: int) -> str:
    if number < 20:
        return _ONES[number]
    tens, ones = divmod(number, 10)
    return f"{_TENS[tens]} {_ONES[ones]}".strip()


def _integer_in_words(number: int) -> str:
    if number == 0:
        return "Zero"
    words = []
    for scale, name in _SCALES:
        count, number = divmod(number, scale)
        if count:
            words.append(f"{_integer_in_words(count)} {name}")
    if number:
        words.append(_below_hundred(number))
    return " ".join(words)


def amount_in_words(amount: Decimal) -> str:
    """``Decimal("3000.50")`` -> ``"Rupees Three Thousand and Fifty Paise Only"``."""
    amount = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    rupees = int(amount)
    paise = int((amount - rupees) * 100)
    words = f"Rupees {_integer_in_words(rupees)}"
    if paise:
        words += f" and {_integer_in_words(paise)} Paise"
    return f"{words} Only"


def challan_number_for(payment, paid_at: datetime | None = None) -> str:
    paid_at = paid_at or payment.paid_at or datetime.now(timezone.utc)
    return f"CH{paid_at:%Y%m%d}{payment.payment_id[-8:].upper()}"


def _render(story: list) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36)
    doc.build(story)
    return buffer.getvalue()


def _details_table(rows: list[list[str]]) -> Table:
    table = Table(rows, hAlign="LEFT", colWidths=[150, 330])
    table.setStyle(_TABLE_STYLE)
    return table


def render_recommendation_form(application) -> bytes:
    styles = getSampleStyleSheet()
    title = position_title(application.position_type)
    rows = [
        ["Application No.", application.application_number],
        ["Applicant", application.full_name],
        ["Position", title],
        ["Email", application.email],
        ["Phone", application.phone],
        ["Address", application.address or "-"],
        ["Qualification", application.qualification or "-"],
    ]
    story = [
        Paragraph(f"<b>{settings.issuing_authority}</b>", styles["Title"]),
        Paragraph(f"Recommendation for registration as {title}", styles["Heading2"]),
        Spacer(1, 12),
        _details_table(rows),
        Spacer(1, 18),
        Paragraph(
            "The documents submitted with this application have been scrutinised and "
            "the applicant is recommended for registration, subject to the approval of "
            "the competent authority.",
            styles["BodyText"],
        ),
        # Officers' signatures are placed on the last page by the HSM.
        Spacer(1, 200),
        Paragraph("Junior Engineer / Assistant Engineer / Executive Engineer / City Engineer", styles["Italic"]),
    ]
    return _render(story)


def render_payment_challan(application, payment, challan_number: str) -> bytes:
    styles = getSampleStyleSheet()
    paid_at = payment.paid_at or datetime.now(timezone.utc)
    rows = [
        ["Challan No.", challan_number],
        ["Application No.", application.application_number],
        ["Name", application.full_name],
        ["Position", position_title(application.position_type)],
        ["Amount", f"{payment.currency} {Decimal(payment.amount):,.2f}"],
        ["Amount in words", amount_in_words(payment.amount)],
        ["Payment reference", payment.payment_id],
        ["Gateway transaction", payment.transaction_id or "-"],
        ["Date", paid_at.strftime("%d %B %Y")],
    ]
    story = [
        Paragraph(f"<b>{settings.issuing_authority}</b>", styles["Title"]),
        Paragraph("Registration Fee Challan", styles["Heading2"]),
        Spacer(1, 12),
        _details_table(rows),
        Spacer(1, 18),
        Paragraph(
            f"Received from <b>{escape(application.full_name)}</b> the registration fee shown above.",
            styles["BodyText"],
        ),
    ]
    return _render(story)


def render_licence_certificate(application, certificate_number: str, issued_at: datetime | None = None) -> bytes:
    styles = getSampleStyleSheet()
    issued_at = issued_at or datetime.now(timezone.utc)
    title = position_title(application.position_type)
    rows = [
        ["Certificate No.", certificate_number],
        ["Application No.", application.application_number],
        ["Name", application.full_name],
        ["Registered as", title],
        ["Date of issue", issued_at.strftime("%d %B %Y")],
    ]
    story = [
        Paragraph(f"<b>{settings.issuing_authority}</b>", styles["Title"]),
        Paragraph(f"Licence Certificate: {title}", styles["Heading2"]),
        Spacer(1, 12),
        Paragraph(
            f"This is to certify that <b>{escape(application.full_name)}</b> is registered as "
            f"{title} with the {settings.issuing_authority}.",
            styles["BodyText"],
        ),
        Spacer(1, 12),
        _details_table(rows),
        Spacer(1, 220),
        Paragraph("Executive Engineer / City Engineer", styles["Italic"]),
    ]
    return _render(story)
