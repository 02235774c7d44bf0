from __future__ import annotations

from typing import Any, Dict

from somnia_agent.pricing.client import normalize_asset_ids
from somnia_agent.services import ActionServices
from somnia_agent.tools.common import text_field

TOOL_ID = "fetch_price"
TOOL_NAME = "Fetch Price"
TOOL_DESCRIPTION = "Look up spot prices for one or more assets."
REQUIRED_FIELDS = ("assetIds",)


def run_fetch_price(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    asset_ids = normalize_asset_ids(params.get("assetIds"))
    currency = text_field(params, "vsCurrency", "usd").lower()
    prices = services.price_client.simple_price(asset_ids, vs_currency=currency)
    return services.assembler.success(
        {
            "currency": currency,
            "prices": prices,
            "missing": [item for item in asset_ids if item not in prices],
        }
    )
