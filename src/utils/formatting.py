"""Telegram Markdown formatting for ledger values."""

from datetime import date

from ..ledger.models import Direction, Frequency

_MARKDOWN_SPECIAL = ("\\", "_", "*", "`", "[")

FREQUENCY_LABELS = {
    Frequency.ONE_TIME: "único",
    Frequency.MONTHLY: "mensal",
    Frequency.ANNUAL: "anual",
    Frequency.SEMIANNUAL: "semestral",
}

MONTH_NAMES = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def escape_markdown(text: str) -> str:
    """Escape characters that legacy Markdown parse mode interprets."""
    for char in _MARKDOWN_SPECIAL:
        text = text.replace(char, f"\\{char}")
    return text


def format_money(amount_minor: int) -> str:
    """1234567 -> 'R$12.345,67'."""
    sign = "-" if amount_minor < 0 else ""
    whole, cents = divmod(abs(amount_minor), 100)
    grouped = f"{whole:,}".replace(",", ".")
    return f"{sign}R${grouped},{cents:02d}"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_month(value: date) -> str:
    return f"{MONTH_NAMES[value.month - 1]}/{value.year}"


def format_direction(direction: Direction) -> str:
    return "entrada 📈" if direction == Direction.INFLOW else "saída 📉"


def direction_icon(direction: Direction) -> str:
    return "📈" if direction == Direction.INFLOW else "📉"


def format_frequency(frequency: Frequency) -> str:
    return FREQUENCY_LABELS.get(frequency, frequency.value)
