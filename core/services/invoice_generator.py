"""
Invoice content generation.

The deterministic path is authoritative: it prices lines and computes totals
with core.billing. When an LLM client is configured, the model is asked to
lay out the same invoice as JSON; its answer is used only if it parses
(with json_repair for the usual LLM formatting slips) and every amount agrees
with the deterministic totals. Any disagreement or API failure falls back to
the deterministic result.
"""

import json
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any

from json_repair import repair_json
from pydantic import BaseModel, Field, ValidationError

from clients.llm_client import LLMClient, LLMError
from core.billing import compute_totals, price_lines, to_money, totals_match
from core.models import BillableItem, InvoiceData
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class InvoiceRequest(BaseModel):
    """Everything needed to produce invoice content for one table."""

    hotel_name: str
    table_number: int = Field(..., gt=0)
    items: list[BillableItem] = Field(..., min_length=1)
    gst_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    service_charge_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)


def generate_invoice_number(now: datetime | None = None) -> str:
    """
    Human-facing invoice number.

    Format: INV-YYYYMMDD-XXXXXXXX (random hex, so no sequence table is needed).
    """
    day = (now or now_utc()).strftime("%Y%m%d")
    return f"INV-{day}-{secrets.token_hex(4).upper()}"


class InvoiceGenerator:
    """Build InvoiceData from priced items, optionally via the LLM."""

    SYSTEM_PROMPT = """You format restaurant invoices for a hotel billing system.

You receive an invoice draft as JSON. Return the same invoice as JSON with exactly these keys:
invoice_number, table_number, hotel_name, date, items (each with dish_name, quantity, price, total),
subtotal, gst (percentage, amount), service_charge (percentage, amount), discount, grand_total.

You may tidy dish names (capitalisation, whitespace). Do not change any number.

IMPORTANT: Output raw JSON only. Do not wrap in code fences. Do not include any text before or after the JSON.
"""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm

    def generate(self, request: InvoiceRequest) -> InvoiceData:
        """
        Produce invoice content.

        Never raises for LLM problems; those are logged and the deterministic
        invoice is returned instead.
        """
        invoice = self.generate_deterministic(request)
        if self.llm is None:
            return invoice

        try:
            candidate = self._generate_with_llm(invoice)
        except LLMError as e:
            logger.warning(f"LLM invoice generation failed, using deterministic invoice: {e}")
            return invoice

        if candidate is None:
            return invoice

        logger.info(f"Using LLM-formatted invoice {invoice.invoice_number}")
        return candidate

    def generate_deterministic(self, request: InvoiceRequest) -> InvoiceData:
        """Price lines and compute totals with cent rounding at each step."""
        lines = price_lines(request.items)
        totals = compute_totals(
            lines,
            request.gst_percentage,
            request.service_charge_percentage,
            request.discount_amount,
        )
        now = now_utc()

        return InvoiceData(
            invoice_number=generate_invoice_number(now),
            table_number=request.table_number,
            hotel_name=request.hotel_name,
            date=now,
            items=lines,
            subtotal=totals.subtotal,
            gst=totals.gst,
            service_charge=totals.service_charge,
            discount=totals.discount,
            grand_total=totals.grand_total,
        )

    def _generate_with_llm(self, draft: InvoiceData) -> InvoiceData | None:
        """Ask the LLM to format `draft`. None when its answer is unusable."""
        response = self.llm.generate(system=self.SYSTEM_PROMPT, prompt=draft.model_dump_json())

        parsed = self._parse_json_with_repair(response.content)
        if not parsed:
            logger.warning("LLM returned no usable JSON for invoice")
            return None

        # Identity fields are ours, not the model's
        parsed.update(
            invoice_number=draft.invoice_number,
            table_number=draft.table_number,
            hotel_name=draft.hotel_name,
            date=draft.date.isoformat(),
        )

        try:
            candidate = InvoiceData.model_validate(parsed)
        except ValidationError as e:
            logger.warning(f"LLM invoice failed validation: {e.error_count()} error(s)")
            return None

        if not self._agrees_with(draft, candidate):
            logger.warning(f"LLM invoice totals disagree with computed totals for {draft.invoice_number}")
            return None

        return candidate.model_copy(update={"items": [
            line.model_copy(update={"menu_item_id": original.menu_item_id})
            for line, original in zip(candidate.items, draft.items)
        ]})

    def _agrees_with(self, draft: InvoiceData, candidate: InvoiceData) -> bool:
        """Same lines (quantity, price, total) and same aggregates, to the cent."""
        if len(candidate.items) != len(draft.items):
            return False

        for ours, theirs in zip(draft.items, candidate.items):
            if ours.quantity != theirs.quantity:
                return False
            if to_money(theirs.price) != ours.price or to_money(theirs.total) != ours.total:
                return False

        if candidate.gst.percentage != draft.gst.percentage:
            return False
        if candidate.service_charge.percentage != draft.service_charge.percentage:
            return False

        expected = compute_totals(
            draft.items, draft.gst.percentage, draft.service_charge.percentage, draft.discount
        )
        return totals_match(
            expected,
            candidate.subtotal,
            candidate.gst.amount,
            candidate.service_charge.amount,
            candidate.discount,
            candidate.grand_total,
        )

    def _parse_json_with_repair(self, content: str) -> dict[str, Any]:
        """
        Parse JSON with repair fallback for common LLM errors.

        Returns:
            Parsed dict, or empty dict if unparseable
        """
        try:
            result = json.loads(content)
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

        try:
            result = json.loads(repair_json(content))
            if isinstance(result, dict):
                return result
            logger.warning(f"JSON repair returned non-dict: {type(result)}")
            return {}
        except Exception as e:
            logger.warning(f"Could not parse or repair JSON: {e}")
            return {}
