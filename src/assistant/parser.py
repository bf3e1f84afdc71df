"""Message parser: one completion call turns free text into an intent.

The system prompt fixes the extraction schema, the relative-date rules for
the configured locale and the all-or-nothing clarify rule. The reply must be
a bare JSON object; anything else is reported as an error result.
"""

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Sequence

import structlog
from openai import APIError

from ..memory.models import Exchange
from .intents import IntentPayload, decode_intent

logger = structlog.get_logger()

LOCALE_RULES = {
    "pt-BR": """\
- Datas relativas: "hoje"=today, "amanhã"=tomorrow, "ontem"=yesterday,
  "dia 15"=the 15th of the current month, or of next month if already past,
  "próxima sexta"=next Friday, "semana que vem"=next Monday.
- Months: janeiro=01, fevereiro=02, março=03, abril=04, maio=05, junho=06,
  julho=07, agosto=08, setembro=09, outubro=10, novembro=11, dezembro=12.
- Amounts use a comma as decimal separator: "55,90" = 55.90, "1.200" = 1200.
- Past-tense verbs (paguei, comprei, recebi, gastei, transferi, saquei) mean
  record_transaction. Confirmations of something planned (pago, caiu,
  já recebi, chegou, realizei) mean mark_realized.
- Recurrence: "todo mês"/"mensal"=monthly, "todo ano"/"anual"=annual,
  "semestral"/"a cada 6 meses"=semiannual, otherwise one_time.""",
    "en-US": """\
- Relative dates: "today", "tomorrow", "yesterday", "on the 15th"=the 15th of
  the current month, or of next month if already past, "next Friday".
- Amounts use a dot as decimal separator: "55.90" = 55.90.
- Past-tense verbs (paid, bought, received, spent, transferred) mean
  record_transaction. Confirmations of something planned (is paid, arrived,
  came in) mean mark_realized.
- Recurrence: "every month"/"monthly"=monthly, "every year"/"yearly"=annual,
  "every 6 months"=semiannual, otherwise one_time.""",
}

SYSTEM_PROMPT_TEMPLATE = """\
You are the assistant of a personal budgeting app. Today is {today}.
Determine the user's INTENT and extract its fields.

INTENTS:
- new_event: a FUTURE or recurring planned income/expense for the projection.
- record_transaction: a movement that ALREADY HAPPENED (or happens today).
- mark_realized: a PREVIOUSLY PLANNED event is now done/received.
- unknown: none of the above.

LOCALE RULES ({locale}):
{locale_rules}
- Direction: bills, purchases, expenses -> outflow; salary, income -> inflow.
- account_hint: the bank or card keyword if mentioned (nubank, inter, itau...).

CLARIFY CONTRACT:
If ANY required field of the intent is uncertain, do not guess. Set "clarify"
to ONE short question in the user's language and set every other field to
null. Otherwise "clarify" must be null.
Required: new_event -> name, amount, event_date, direction;
record_transaction -> description, amount, direction, date;
mark_realized -> event_name.

Return ONLY one raw JSON object, no prose, no markdown, no code fences.
Include only the fields of the chosen intent:
{{"intent": "new_event", "clarify": null, "name": str, "amount": number,
  "event_date": "YYYY-MM-DD", "direction": "inflow"|"outflow",
  "frequency": "one_time"|"monthly"|"annual"|"semiannual",
  "recurrence_end_date": "YYYY-MM-DD"|null}}
{{"intent": "record_transaction", "clarify": null, "description": str,
  "amount": number, "direction": "inflow"|"outflow", "date": "YYYY-MM-DD",
  "account_hint": str|null}}
{{"intent": "mark_realized", "clarify": null, "event_name": str,
  "month": "YYYY-MM-01"|null}}
{{"intent": "unknown", "clarify": null}}
{{"intent": <any>, "clarify": "question"}}"""


def build_system_prompt(today: date, locale: str) -> str:
    rules = LOCALE_RULES.get(locale, LOCALE_RULES["pt-BR"])
    return SYSTEM_PROMPT_TEMPLATE.format(
        today=today.isoformat(), locale=locale, locale_rules=rules
    )


@dataclass
class ParseResult:
    """Outcome of one classification call.

    Exactly one of ``payload`` / ``error_message`` is set.
    """

    payload: Optional[IntentPayload] = None
    is_error: bool = False
    error_message: Optional[str] = None
    duration_ms: int = 0


class MessageParser:
    """Classify a message (plus recent history) into an ``IntentPayload``."""

    def __init__(
        self,
        chat_provider: Any,
        locale: str = "pt-BR",
        max_tokens: int = 384,
    ) -> None:
        self._provider = chat_provider
        self._locale = locale
        self._max_tokens = max_tokens

    def build_messages(
        self,
        message: str,
        history: Sequence[Exchange],
        today: date,
    ) -> list[dict[str, str]]:
        messages = [
            {"role": "system", "content": build_system_prompt(today, self._locale)}
        ]
        for exchange in history:
            messages.append({"role": "user", "content": exchange.user})
            messages.append({"role": "assistant", "content": exchange.assistant})
        messages.append({"role": "user", "content": message})
        return messages

    async def parse(
        self,
        message: str,
        history: Sequence[Exchange],
        today: date,
    ) -> ParseResult:
        """Never raises for upstream problems; they become ``is_error`` results."""
        messages = self.build_messages(message, history, today)

        try:
            response = await self._provider.chat(
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=0.0,
            )
        except APIError as exc:
            logger.warning("Completion request failed", error=str(exc))
            return ParseResult(is_error=True, error_message=f"completion failed: {exc}")

        raw = response.content.strip()
        try:
            payload = decode_intent(json.loads(raw))
        except json.JSONDecodeError as exc:
            logger.warning(
                "Completion returned non-JSON", error=str(exc), content=raw[:200]
            )
            return ParseResult(
                is_error=True,
                error_message=f"unparseable completion: {raw[:200]}",
                duration_ms=response.duration_ms,
            )
        except ValueError as exc:
            logger.warning("Completion violated schema", error=str(exc))
            return ParseResult(
                is_error=True,
                error_message=f"schema violation: {exc}",
                duration_ms=response.duration_ms,
            )

        logger.info(
            "Message classified",
            intent=payload.intent,
            model=response.model,
            duration_ms=response.duration_ms,
        )
        return ParseResult(payload=payload, duration_ms=response.duration_ms)
