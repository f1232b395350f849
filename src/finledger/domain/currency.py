"""Best-effort conversion of amounts to the reference currency."""

from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError

from finledger.database.base import Database
from finledger.domain.entities import Conversion, ExchangeRateEntry, TransactionCandidate
from finledger.domain.errors import CurrencyConversionUnavailable

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class RateSource(Protocol):
    """External exchange-rate provider, called only on cache misses."""

    name: str

    def fetch_rate(self, on_date: date, from_currency: str, to_currency: str) -> Decimal:
        """Return units of ``from_currency`` per one unit of ``to_currency``."""
        ...


class CurrencyNormalizer:
    """Converts amounts to the reference currency using cached daily rates.

    Failures never propagate: a conversion that cannot be made leaves the
    amount unconverted.
    """

    def __init__(self, db: Database, rate_source: Optional[RateSource], reference_currency: str = "USD"):
        """Initialize currency normalizer.

        Args:
            db: Database instance holding the rate cache
            rate_source: Provider queried on cache misses, or None for cache-only
            reference_currency: Currency every amount is normalized to
        """
        self.db = db
        self.rate_source = rate_source
        self.reference_currency = reference_currency.upper()

    def get_rate(self, on_date: date, from_currency: str) -> Decimal:
        """Return the cached or freshly fetched rate for a day.

        Raises:
            CurrencyConversionUnavailable: If no rate can be obtained
        """
        cached = self.db.get_exchange_rate(on_date, from_currency, self.reference_currency)
        if cached is not None:
            return cached.rate

        if self.rate_source is None:
            raise CurrencyConversionUnavailable(f"No rate source for {from_currency}")

        rate = Decimal(self.rate_source.fetch_rate(on_date, from_currency, self.reference_currency))
        if rate <= 0:
            raise CurrencyConversionUnavailable(f"Invalid rate {rate} for {from_currency}")

        entry = ExchangeRateEntry(
            date=on_date,
            from_currency=from_currency,
            to_currency=self.reference_currency,
            rate=rate,
            source=self.rate_source.name,
        )
        if not self.db.save_exchange_rate(entry):
            # Another writer cached this day first; its rate is authoritative
            stored = self.db.get_exchange_rate(on_date, from_currency, self.reference_currency)
            if stored is not None:
                return stored.rate
        logger.debug("Cached %s/%s rate %s for %s", from_currency, self.reference_currency, rate, on_date)
        return rate

    def to_reference_currency(
        self, amount: Decimal, currency: str, on_date: date
    ) -> Optional[Conversion]:
        """Convert an amount to the reference currency.

        Returns:
            Conversion, or None if the conversion is unavailable
        """
        currency = (currency or "").upper()
        if currency == self.reference_currency:
            return Conversion(
                amount=Decimal(amount).quantize(CENTS, ROUND_HALF_UP),
                rate=Decimal("1"),
                rate_date=on_date,
            )

        try:
            rate = self.get_rate(on_date, currency)
            converted = (Decimal(amount) / rate).quantize(CENTS, ROUND_HALF_UP)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Rate store failed converting %s %s for %s: %s", amount, currency, on_date, e)
            return None
        except Exception as e:
            logger.warning("Could not convert %s %s for %s: %s", amount, currency, on_date, e)
            return None
        return Conversion(amount=converted, rate=rate, rate_date=on_date)

    def normalize(self, candidates: Sequence[TransactionCandidate]) -> list[TransactionCandidate]:
        """Return candidates with reference-currency fields filled where possible."""
        normalized = []
        for candidate in candidates:
            conversion = self.to_reference_currency(candidate.amount, candidate.currency, candidate.date)
            if conversion is None:
                normalized.append(candidate)
                continue
            normalized.append(
                replace(
                    candidate,
                    amount_in_reference_currency=conversion.amount,
                    exchange_rate=conversion.rate,
                    exchange_rate_date=conversion.rate_date,
                )
            )
        return normalized

    def backfill(self, owner_id: Optional[str] = None) -> dict[str, int]:
        """Convert stored transactions that still lack a reference amount.

        Returns:
            Dict with counts:
            - processed: transactions converted
            - failed: transactions still unconverted
        """
        processed = 0
        failed = 0
        for txn in self.db.list_transactions(owner_id=owner_id, unconverted_only=True):
            conversion = self.to_reference_currency(txn.amount, txn.currency, txn.date)
            if conversion is None:
                failed += 1
                continue
            self.db.update_transaction_conversion(
                txn.id, conversion.amount, conversion.rate, conversion.rate_date
            )
            processed += 1
        logger.info("Currency backfill: %d converted, %d failed", processed, failed)
        return {"processed": processed, "failed": failed}
