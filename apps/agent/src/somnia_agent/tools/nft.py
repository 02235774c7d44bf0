from __future__ import annotations

from typing import Any, Dict, List

from somnia_agent.errors import ValidationError
from somnia_agent.pipeline.composite import CompositeRun, build_metadata_uri, event_arg
from somnia_agent.services import ActionServices
from somnia_agent.tools.common import optional_text, required_text, text_field

DEPLOY_COLLECTION_ID = "deploy_nft_collection"
DEPLOY_COLLECTION_FIELDS = ("privateKey", "name", "symbol", "baseURI")

CREATE_COLLECTION_ID = "create_nft_collection"
CREATE_COLLECTION_FIELDS = ("privateKey", "name", "symbol")

CREATE_AND_MINT_ID = "create_and_mint_nft"
CREATE_AND_MINT_FIELDS = ("privateKey", "recipientAddress", "nftName", "nftDescription", "imageUrl")
CREATE_AND_MINT_ALTERNATIVES = (("collectionAddress",), ("collectionName", "collectionSymbol"))


def _attributes(params: Dict[str, Any]) -> List[Any]:
    value = params.get("attributes")
    if value is None or value == "":
        return []
    if not isinstance(value, list):
        raise ValidationError("attributes must be a list.", details={"field": "attributes"})
    return value


def _step_hash(run: CompositeRun, name: str) -> str | None:
    outcome = run.outcome(name)
    return outcome.tx_hash if outcome is not None else None


def run_deploy_nft_collection(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    name = required_text(params, "name")
    symbol = required_text(params, "symbol")
    base_uri = text_field(params, "baseURI")

    outcome = services.coordinator.deploy_collection(signer, name=name, symbol=symbol, base_uri=base_uri)
    return services.assembler.success(
        {
            "collectionAddress": event_arg(outcome, "collectionAddress"),
            "name": name,
            "symbol": symbol,
            "baseURI": base_uri,
            "creator": signer.address,
        },
        outcome,
    )


def run_create_nft_collection(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    """Deploy a collection and mint token #1 of it to the signer."""
    signer = services.signer(params)
    name = required_text(params, "name")
    symbol = required_text(params, "symbol")
    base_uri = text_field(params, "baseURI")
    token_uri = optional_text(params, "tokenURI") or build_metadata_uri(
        name=name,
        description=text_field(params, "description"),
        image=text_field(params, "imageUrl"),
        attributes=_attributes(params),
    )

    run = services.coordinator.create_collection_and_mint(
        signer,
        recipient=signer.address,
        token_uri=token_uri,
        collection_name=name,
        collection_symbol=symbol,
        base_uri=base_uri,
    )
    return services.assembler.composite_success(
        {
            "collectionAddress": run.values["collectionAddress"],
            "name": name,
            "symbol": symbol,
            "creator": signer.address,
            "firstTokenId": run.values["tokenId"],
            "tokenURI": token_uri,
            "deployTxHash": _step_hash(run, "deploy_collection"),
            "mintTxHash": _step_hash(run, "mint"),
        },
        run,
    )


def run_create_and_mint_nft(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    collection_address = optional_text(params, "collectionAddress")
    token_uri = optional_text(params, "tokenURI") or build_metadata_uri(
        name=required_text(params, "nftName"),
        description=text_field(params, "nftDescription"),
        image=text_field(params, "imageUrl"),
        attributes=_attributes(params),
    )

    run = services.coordinator.create_collection_and_mint(
        signer,
        recipient=params.get("recipientAddress"),
        token_uri=token_uri,
        collection_address=collection_address,
        collection_name=text_field(params, "collectionName"),
        collection_symbol=text_field(params, "collectionSymbol"),
        base_uri=text_field(params, "baseURI"),
    )
    return services.assembler.composite_success(
        {
            "collectionAddress": run.values["collectionAddress"],
            "collectionCreated": collection_address is None,
            "tokenId": run.values["tokenId"],
            "tokenURI": token_uri,
            "recipient": run.values["recipient"],
            "deployTxHash": _step_hash(run, "deploy_collection"),
            "mintTxHash": _step_hash(run, "mint"),
        },
        run,
    )
