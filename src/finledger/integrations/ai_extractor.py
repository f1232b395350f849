"""Enhanced statement extraction through a hosted language model."""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

import httpx

from finledger.domain.entities import ExtractionMethod, ExtractionResult, TransactionCandidate
from finledger.utils.date_parser import parse_date
from finledger.utils.merchant import extract_merchant

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
AI_CANDIDATE_CONFIDENCE = 95
MAX_DOCUMENT_CHARACTERS = 100_000

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

PROMPT_TEMPLATE = """Analyze this bank or credit card statement and extract every transaction.

File name: {file_name}

Return ONLY a JSON object with this structure, without any other text:
{{
  "banco": "bank name",
  "fecha_estado": "YYYY-MM-DD",
  "movimientos": [
    {{
      "fecha": "YYYY-MM-DD",
      "referencia": "reference number or empty string",
      "descripcion": "transaction description",
      "dolares": 0.00,
      "pesos": 0.00
    }}
  ]
}}

Rules:
- Dates must use the YYYY-MM-DD format.
- Charges, purchases and debits are negative; payments, refunds and credits are positive.
- Put amounts in pesos under "pesos" and amounts in dollars under "dolares", using 0 for the other.
- Skip totals, balances and summary lines.

Statement content:
{text}
"""


class AIExtractionError(RuntimeError):
    """The language model could not produce a usable extraction."""


def strip_code_fences(raw: str) -> str:
    """Remove Markdown code fences wrapped around a JSON answer."""
    return _FENCE_RE.sub("", raw.strip()).strip()


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount '{value}'") from e


class LLMStatementExtractor:
    """Extracts transactions by sending statement text to a hosted model.

    Models are tried in order. A model the API does not know (HTTP 404) moves
    on to the next one; any other failure is raised to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        models: Sequence[str],
        timeout: float = 120.0,
        max_tokens: int = 8192,
        client: Optional[httpx.Client] = None,
        default_currency: str = "ARS",
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.models = tuple(models)
        self.max_tokens = max_tokens
        self.default_currency = default_currency
        self.client = client or httpx.Client(timeout=timeout)

    def is_available(self) -> bool:
        return bool(self.api_key) and bool(self.models)

    def extract_enhanced(self, text: str, file_name: str, owner_id: str) -> ExtractionResult:
        """Extract candidates from statement text.

        Args:
            text: Parsed document text
            file_name: Original file name, included in the prompt
            owner_id: Document owner, for logging only

        Returns:
            ExtractionResult with method ``ai-assisted``

        Raises:
            AIExtractionError: If no model produced a parseable answer
            httpx.HTTPError: On transport failures
        """
        prompt = PROMPT_TEMPLATE.format(file_name=file_name, text=text[:MAX_DOCUMENT_CHARACTERS])
        answer = self._complete(prompt)
        payload = self._parse_answer(answer)
        result = self._to_result(payload)
        logger.info(
            "Model extracted %d transactions from %s for owner %s",
            len(result.candidates),
            file_name,
            owner_id,
        )
        return result

    def _complete(self, prompt: str) -> str:
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        for model in self.models:
            body = {
                "model": model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            }
            response = self.client.post(self.api_url, headers=headers, json=body)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError:
                if response.status_code == 404:
                    logger.warning("Model %s not available, trying next model", model)
                    continue
                raise
            logger.debug("Model %s answered", model)
            return self._answer_text(response.json())
        raise AIExtractionError("None of the configured models is available")

    @staticmethod
    def _answer_text(data: dict[str, Any]) -> str:
        blocks = data.get("content") or []
        parts = [block.get("text", "") for block in blocks if block.get("type") == "text"]
        if not parts:
            raise AIExtractionError("Model response contained no text")
        return "".join(parts)

    @staticmethod
    def _parse_answer(answer: str) -> dict[str, Any]:
        try:
            payload = json.loads(strip_code_fences(answer))
        except json.JSONDecodeError as e:
            raise AIExtractionError(f"Model answer is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise AIExtractionError("Model answer is not a JSON object")
        return payload

    def _to_result(self, payload: dict[str, Any]) -> ExtractionResult:
        candidates = []
        skipped = 0
        for item in payload.get("movimientos") or []:
            try:
                candidates.append(self._to_candidate(item))
            except (ValueError, TypeError, AttributeError) as e:
                logger.debug("Skipping model transaction %r: %s", item, e)
                skipped += 1

        statement_date = None
        if payload.get("fecha_estado"):
            try:
                statement_date = parse_date(payload["fecha_estado"])
            except ValueError:
                logger.debug("Ignoring statement date %r", payload["fecha_estado"])

        return ExtractionResult(
            candidates=tuple(candidates),
            bank_name_guess=payload.get("banco") or None,
            statement_date=statement_date,
            pipeline_confidence=AI_CANDIDATE_CONFIDENCE if candidates else 0,
            method=ExtractionMethod.AI_ASSISTED,
            skipped_rows=skipped,
        )

    def _to_candidate(self, item: dict[str, Any]) -> TransactionCandidate:
        txn_date = parse_date(item["fecha"])
        description = str(item.get("descripcion") or "").strip()
        if not description:
            raise ValueError("Missing description")

        pesos = _decimal(item.get("pesos"))
        dollars = _decimal(item.get("dolares"))
        if pesos != 0:
            amount, currency = pesos, self.default_currency
        elif dollars != 0:
            amount, currency = dollars, "USD"
        else:
            raise ValueError("Zero amount")

        reference = str(item.get("referencia") or "").strip() or None
        return TransactionCandidate(
            date=txn_date,
            description=description,
            merchant=extract_merchant(description),
            amount=amount,
            reference_number=reference,
            raw_source=json.dumps(item, ensure_ascii=False, default=str),
            extraction_confidence=AI_CANDIDATE_CONFIDENCE,
            currency=currency,
        )
