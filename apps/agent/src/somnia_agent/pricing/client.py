from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import httpx
import structlog

from somnia_agent.errors import NetworkError, ValidationError

logger = structlog.get_logger(__name__)


def _resolve_httpx_timeout(timeout_seconds: float) -> Optional[float]:
    try:
        timeout_value = float(timeout_seconds)
    except (TypeError, ValueError):
        return None

    if timeout_value <= 0:
        return None
    return timeout_value


def normalize_asset_ids(value: Any) -> List[str]:
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, (list, tuple)):
        raw = [str(item) for item in value]
    else:
        raw = []
    ids: List[str] = []
    for item in raw:
        text = item.strip().lower()
        if text and text not in ids:
            ids.append(text)
    return ids


class PriceClient:
    """Simple-price lookups against a CoinGecko-compatible HTTP API.

    One instance owns one pooled ``httpx.Client`` and is closed by whoever built
    it (the API closes it on shutdown).
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=str(base_url).rstrip("/"),
            timeout=_resolve_httpx_timeout(timeout_seconds),
            transport=transport,
        )

    def simple_price(self, asset_ids: Sequence[str], *, vs_currency: str = "usd") -> Dict[str, Decimal]:
        ids = normalize_asset_ids(list(asset_ids))
        if not ids:
            raise ValidationError("At least one asset id is required.", details={"field": "assetIds"})
        currency = str(vs_currency or "usd").strip().lower()

        try:
            response = self._client.get(
                "/simple/price",
                params={"ids": ",".join(ids), "vs_currencies": currency},
            )
            response.raise_for_status()
            payload = response.json(parse_float=Decimal)
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"Price lookup failed with HTTP {exc.response.status_code}.",
                reason=exc.response.text[:200],
                provider_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise NetworkError(f"Price lookup failed: {exc}", reason=str(exc)) from exc

        prices: Dict[str, Decimal] = {}
        missing: List[str] = []
        for asset_id in ids:
            entry = payload.get(asset_id) if isinstance(payload, dict) else None
            value = entry.get(currency) if isinstance(entry, dict) else None
            if value is None:
                missing.append(asset_id)
                continue
            prices[asset_id] = Decimal(str(value))

        if missing:
            logger.warning("price_missing", assets=missing, currency=currency)
        if not prices:
            raise ValidationError(
                "No prices returned for the requested assets.",
                details={"missing": missing, "currency": currency},
            )
        return prices

    def close(self) -> None:
        self._client.close()
