"""Exchange rates from the public dolarapi.com quote service."""

from datetime import date
from decimal import Decimal, InvalidOperation
import logging
from typing import Optional

import httpx

from finledger.domain.errors import CurrencyConversionUnavailable

logger = logging.getLogger(__name__)


class DolarApiRateSource:
    """Official ARS/USD selling rate.

    The service only publishes the current quote, so the same value is
    returned whatever date is asked for.
    """

    name = "dolarapi.com"
    supported_pairs = {("ARS", "USD")}

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def fetch_rate(self, on_date: date, from_currency: str, to_currency: str) -> Decimal:
        """Return pesos per one dollar.

        Raises:
            CurrencyConversionUnavailable: For unsupported pairs or a failed request
        """
        if (from_currency, to_currency) not in self.supported_pairs:
            raise CurrencyConversionUnavailable(
                f"No rate source for {from_currency} to {to_currency}"
            )
        try:
            response = self.client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CurrencyConversionUnavailable(f"Rate request to {self.name} failed: {e}") from e

        try:
            rate = Decimal(str(data["venta"]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise CurrencyConversionUnavailable(f"Unexpected answer from {self.name}: {data!r}") from e
        if rate <= 0:
            raise CurrencyConversionUnavailable(f"Non-positive rate {rate} from {self.name}")

        logger.debug("Fetched %s/%s rate %s for %s", from_currency, to_currency, rate, on_date)
        return rate
