"""Intent payloads produced by the message parser.

The classifier answers with one JSON object. It is decoded into exactly one
variant of ``IntentPayload``. A non-null ``clarify`` always wins: the
payload becomes ``ClarifyIntent`` and every extracted field is discarded, so
executors never see half-filled data the classifier was unsure about.
"""

import datetime as dt
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ..ledger.models import Direction, Frequency

DEFAULT_CLARIFY_QUESTION = "Pode me dar mais detalhes?"

_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


class _Intent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class NewEventIntent(_Intent):
    """Plan a future (possibly recurring) income or expense."""

    intent: Literal["new_event"]
    name: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    event_date: Optional[date] = None
    direction: Optional[Direction] = None
    frequency: Optional[Frequency] = None
    recurrence_end_date: Optional[date] = None

    required_fields: ClassVar[tuple[str, ...]] = (
        "name",
        "amount",
        "event_date",
        "direction",
    )


class RecordTransactionIntent(_Intent):
    """A movement that already happened."""

    intent: Literal["record_transaction"]
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    direction: Optional[Direction] = None
    date: Optional[dt.date] = None
    account_hint: Optional[str] = None

    required_fields: ClassVar[tuple[str, ...]] = (
        "description",
        "amount",
        "direction",
        "date",
    )


class MarkRealizedIntent(_Intent):
    """Confirm that a planned event happened."""

    intent: Literal["mark_realized"]
    event_name: Optional[str] = None
    month: Optional[date] = None

    required_fields: ClassVar[tuple[str, ...]] = ("event_name",)

    @field_validator("month", mode="before")
    @classmethod
    def accept_year_month(cls, v: Any) -> Any:
        if isinstance(v, str) and _MONTH_RE.match(v.strip()):
            return f"{v.strip()}-01"
        return v


class ClarifyIntent(_Intent):
    """The classifier needs one more answer before anything can run."""

    intent: Literal["clarify"]
    question: str


class UnknownIntent(_Intent):
    intent: Literal["unknown"]


IntentPayload = Annotated[
    Union[
        NewEventIntent,
        RecordTransactionIntent,
        MarkRealizedIntent,
        ClarifyIntent,
        UnknownIntent,
    ],
    Field(discriminator="intent"),
]

_payload_adapter: TypeAdapter[IntentPayload] = TypeAdapter(IntentPayload)


def decode_intent(data: Any) -> IntentPayload:
    """Decode a classifier JSON object into an intent payload.

    Raises:
        ValueError: The object does not match any variant
            (pydantic's ``ValidationError`` is a ``ValueError``).
    """
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    data = dict(data)
    clarify = data.pop("clarify", None)
    if clarify is not None:
        question = str(clarify).strip() or DEFAULT_CLARIFY_QUESTION
        return ClarifyIntent(intent="clarify", question=question)

    return _payload_adapter.validate_python(data)


def missing_fields(payload: _Intent) -> list[str]:
    """Required fields of an actionable intent that came back empty."""
    required = getattr(payload, "required_fields", ())
    missing = []
    for name in required:
        value = getattr(payload, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (reais) to integer centavos."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
