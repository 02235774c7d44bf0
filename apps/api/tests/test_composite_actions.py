from __future__ import annotations

import base64
import json
import unittest

from eth_account import Account

from ledger_fakes import (
    AIRDROP,
    COLLECTION,
    NFT_FACTORY,
    ONE_ETHER,
    OTHER_RECIPIENT,
    RECIPIENT,
    TEST_PRIVATE_KEY,
    TEST_SIGNER_ADDRESS,
    TOKEN,
    FakeLedger,
    encode_log,
    make_config,
)
from somnia_agent.chain.abis import NFT_COLLECTION_ABI, NFT_FACTORY_ABI
from somnia_agent.errors import (
    CompositeActionError,
    ConfigurationError,
    ExpectedEventNotFoundError,
    InsufficientBalanceError,
    InvalidAddressError,
    OwnershipMismatchError,
    SubmissionError,
    ValidationError,
)
from somnia_agent.pipeline.composite import CompositeActionCoordinator, build_metadata_uri, event_arg
from somnia_agent.pipeline.transaction import TransactionPipeline
from somnia_agent.state.models import DecodedEvent, TransactionOutcome


def _signer():
    return Account.from_key(TEST_PRIVATE_KEY)


def _coordinator(ledger: FakeLedger, **config_overrides) -> CompositeActionCoordinator:
    return CompositeActionCoordinator(
        pipeline=TransactionPipeline(ledger=ledger),
        config=make_config(**config_overrides),
    )


def _deploying_ledger(**kwargs) -> FakeLedger:
    ledger = FakeLedger(**kwargs)
    ledger.logs_by_function["createCollection"] = [
        encode_log(
            NFT_FACTORY_ABI,
            "CollectionCreated",
            {"collectionAddress": COLLECTION, "creator": TEST_SIGNER_ADDRESS, "name": "Art", "symbol": "ART"},
            address=NFT_FACTORY,
        )
    ]
    ledger.logs_by_function["safeMint"] = [
        encode_log(
            NFT_COLLECTION_ABI,
            "Transfer",
            {"from": "0x" + "00" * 20, "to": RECIPIENT, "tokenId": 1},
            address=COLLECTION,
        )
    ]
    return ledger


class CreateCollectionAndMintTests(unittest.TestCase):
    def test_deploy_verify_mint(self) -> None:
        ledger = _deploying_ledger()
        run = _coordinator(ledger).create_collection_and_mint(
            _signer(),
            recipient=RECIPIENT,
            token_uri="ipfs://meta/1",
            collection_name="Art",
            collection_symbol="ART",
        )
        self.assertEqual(ledger.sent_functions, ["createCollection", "safeMint"])
        self.assertEqual([step.name for step in run.steps], ["deploy_collection", "verify_ownership", "mint"])
        self.assertTrue(all(step.status == "succeeded" for step in run.steps))
        self.assertEqual(run.values["collectionAddress"], COLLECTION)
        self.assertEqual(run.values["tokenId"], 1)
        mint_call = ledger.sent[1][0]
        self.assertEqual(mint_call.to, COLLECTION)
        self.assertEqual(mint_call.args, (RECIPIENT, "ipfs://meta/1"))

    def test_mint_failure_keeps_deploy_record(self) -> None:
        ledger = _deploying_ledger()
        ledger.status_by_function["safeMint"] = 0
        with self.assertRaises(CompositeActionError) as ctx:
            _coordinator(ledger).create_collection_and_mint(
                _signer(),
                recipient=RECIPIENT,
                token_uri="ipfs://meta/1",
                collection_name="Art",
                collection_symbol="ART",
            )
        error = ctx.exception
        self.assertEqual(error.failed_step, "mint")
        self.assertIsInstance(error.cause, SubmissionError)
        self.assertEqual(error.status_code, 500)
        self.assertEqual(error.details["failedStep"], "mint")

        by_name = {step["step"]: step for step in error.steps}
        self.assertEqual(by_name["deploy_collection"]["status"], "succeeded")
        self.assertEqual(by_name["deploy_collection"]["transactionHash"], "0x" + f"{1:064x}")
        self.assertEqual(by_name["deploy_collection"]["collectionAddress"], COLLECTION)
        self.assertEqual(by_name["mint"]["status"], "failed")
        self.assertIn("reverted", by_name["mint"]["error"])
        # No compensating transaction was sent.
        self.assertEqual(ledger.sent_functions, ["createCollection", "safeMint"])

    def test_existing_collection_skips_deploy(self) -> None:
        ledger = _deploying_ledger()
        run = _coordinator(ledger).create_collection_and_mint(
            _signer(),
            recipient=RECIPIENT,
            token_uri="ipfs://meta/2",
            collection_address=COLLECTION,
        )
        self.assertEqual(ledger.sent_functions, ["safeMint"])
        self.assertEqual([step.name for step in run.steps], ["verify_ownership", "mint"])

    def test_ownership_mismatch_stops_before_mint(self) -> None:
        ledger = _deploying_ledger()
        ledger.reads["owner"] = OTHER_RECIPIENT
        with self.assertRaises(CompositeActionError) as ctx:
            _coordinator(ledger).create_collection_and_mint(
                _signer(),
                recipient=RECIPIENT,
                token_uri="ipfs://meta/2",
                collection_address=COLLECTION,
            )
        self.assertIsInstance(ctx.exception.cause, OwnershipMismatchError)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual([step["status"] for step in ctx.exception.steps], ["failed", "skipped"])
        self.assertEqual(ledger.sent, [])

    def test_missing_factory_is_configuration_error(self) -> None:
        ledger = FakeLedger()
        with self.assertRaises(ConfigurationError):
            _coordinator(ledger, nft_factory_address="").create_collection_and_mint(
                _signer(),
                recipient=RECIPIENT,
                token_uri="ipfs://meta/3",
                collection_name="Art",
                collection_symbol="ART",
            )
        self.assertEqual(ledger.calls, [])

    def test_unexpected_error_after_deploy_keeps_the_record(self) -> None:
        ledger = _deploying_ledger()
        ledger.reads["owner"] = RuntimeError("connection reset by peer")
        with self.assertRaises(CompositeActionError) as ctx:
            _coordinator(ledger).create_collection_and_mint(
                _signer(),
                recipient=RECIPIENT,
                token_uri="ipfs://meta/4",
                collection_name="Art",
                collection_symbol="ART",
            )
        error = ctx.exception
        self.assertEqual(error.failed_step, "verify_ownership")
        self.assertIsInstance(error.cause, SubmissionError)
        self.assertEqual(error.status_code, 500)
        self.assertEqual(error.details["reason"], "connection reset by peer")
        self.assertEqual(error.details["providerCode"], "RuntimeError")
        self.assertEqual(
            [(step["step"], step["status"]) for step in error.steps],
            [("deploy_collection", "succeeded"), ("verify_ownership", "failed"), ("mint", "skipped")],
        )
        self.assertEqual(error.steps[0]["transactionHash"], "0x" + f"{1:064x}")
        self.assertEqual(ledger.sent_functions, ["createCollection"])

    def test_missing_event_argument_names_the_event(self) -> None:
        outcome = TransactionOutcome(
            tx_hash="0xabc",
            block_number=1,
            gas_used=21_000,
            event=DecodedEvent(name="CollectionCreated", args={"creator": TEST_SIGNER_ADDRESS}),
        )
        with self.assertRaises(ExpectedEventNotFoundError) as ctx:
            event_arg(outcome, "collectionAddress")
        self.assertEqual(ctx.exception.message, "CollectionCreated event has no 'collectionAddress' argument.")
        self.assertEqual(ctx.exception.details["event"], "CollectionCreated")
        self.assertEqual(ctx.exception.details["argument"], "collectionAddress")
        self.assertEqual(ctx.exception.details["transactionHash"], "0xabc")

    def test_metadata_uri_is_base64_json(self) -> None:
        uri = build_metadata_uri(name="Sunset", description="Orange", image="ipfs://img", attributes=[{"a": 1}])
        prefix = "data:application/json;base64,"
        self.assertTrue(uri.startswith(prefix))
        decoded = json.loads(base64.b64decode(uri[len(prefix):]).decode("utf-8"))
        self.assertEqual(
            decoded,
            {"name": "Sunset", "description": "Orange", "image": "ipfs://img", "attributes": [{"a": 1}]},
        )


class AirdropTests(unittest.TestCase):
    def test_invalid_recipients_fail_without_network_calls(self) -> None:
        ledger = FakeLedger()
        with self.assertRaises(ValidationError) as ctx:
            _coordinator(ledger).airdrop(_signer(), recipients=["0xBAD", RECIPIENT], amount=1)
        self.assertIsInstance(ctx.exception, InvalidAddressError)
        self.assertEqual(ctx.exception.details["invalid"], ["0xBAD"])
        self.assertEqual(ledger.calls, [])

    def test_all_bad_entries_are_listed(self) -> None:
        ledger = FakeLedger()
        with self.assertRaises(InvalidAddressError) as ctx:
            _coordinator(ledger).airdrop(_signer(), recipients=["0xBAD", RECIPIENT, "nope", 12], amount=1)
        self.assertEqual(ctx.exception.addresses, ["0xBAD", "nope", "12"])

    def test_native_airdrop_sends_total_in_one_transaction(self) -> None:
        ledger = FakeLedger()
        outcome, amounts = _coordinator(ledger).airdrop(
            _signer(), recipients=[RECIPIENT, OTHER_RECIPIENT], amount="1.5"
        )
        self.assertEqual(ledger.sent_functions, ["airdropNative"])
        call = ledger.sent[0][0]
        self.assertEqual(call.to, AIRDROP)
        self.assertEqual(call.value, 3 * ONE_ETHER)
        self.assertEqual(call.args, ([RECIPIENT, OTHER_RECIPIENT], 15 * 10**17))
        self.assertEqual(amounts["totalAmount"], 3 * ONE_ETHER)
        self.assertEqual(outcome.block_number, 1001)

    def test_preflight_covers_the_total(self) -> None:
        ledger = FakeLedger(native_balance=ONE_ETHER)
        with self.assertRaises(InsufficientBalanceError) as ctx:
            _coordinator(ledger).airdrop(_signer(), recipients=[RECIPIENT, OTHER_RECIPIENT], amount="0.6")
        self.assertEqual(ctx.exception.details["required"], str(12 * 10**17))
        self.assertEqual(ctx.exception.details["shortfall"], str(2 * 10**17))
        self.assertEqual(ledger.sent, [])

    def test_token_airdrop_approves_then_sends(self) -> None:
        ledger = FakeLedger(decimals=6, token_balance=10**9)
        outcome, amounts = _coordinator(ledger).airdrop(
            _signer(), recipients=[RECIPIENT, OTHER_RECIPIENT], amount="2", token_address=TOKEN
        )
        self.assertEqual(ledger.sent_functions, ["approve", "airdropToken"])
        self.assertEqual(ledger.sent[0][0].args, (AIRDROP, 4_000_000))
        self.assertEqual(amounts, {"amountEach": 2_000_000, "totalAmount": 4_000_000, "decimals": 6})
        self.assertIsNotNone(outcome.approval)


if __name__ == "__main__":
    unittest.main()
