from __future__ import annotations

import unittest

from eth_account import Account

from ledger_fakes import (
    COLLECTION,
    NFT_FACTORY,
    ONE_ETHER,
    RECIPIENT,
    TEST_PRIVATE_KEY,
    TEST_SIGNER_ADDRESS,
    TOKEN,
    FakeLedger,
    encode_log,
)
from somnia_agent.chain.abis import ERC20_ABI, NFT_COLLECTION_ABI, NFT_FACTORY_ABI
from somnia_agent.chain.events import EventDecoder
from somnia_agent.errors import (
    ExpectedEventNotFoundError,
    InsufficientBalanceError,
    NotFoundError,
    PreflightError,
    SubmissionError,
)
from somnia_agent.pipeline.transaction import TransactionPipeline, buffered_gas_limit
from somnia_agent.state.models import CallSpec, EventExpectation, PreflightRequirement


def _signer():
    return Account.from_key(TEST_PRIVATE_KEY)


def _collection_created(address: str, *, log_index: int = 0) -> dict:
    return encode_log(
        NFT_FACTORY_ABI,
        "CollectionCreated",
        {"collectionAddress": address, "creator": TEST_SIGNER_ADDRESS, "name": "Art", "symbol": "ART"},
        address=NFT_FACTORY,
        log_index=log_index,
    )


def _create_collection_call() -> CallSpec:
    return CallSpec(
        to=NFT_FACTORY,
        abi=NFT_FACTORY_ABI,
        function="createCollection",
        args=("Art", "ART", ""),
        label="createCollection",
    )


class GasPlanTests(unittest.TestCase):
    def test_buffer_is_twenty_percent_rounded_up(self) -> None:
        self.assertEqual(buffered_gas_limit(100_000), 120_000)
        self.assertEqual(buffered_gas_limit(21_001), 25_202)
        self.assertEqual(buffered_gas_limit(1), 2)
        self.assertEqual(buffered_gas_limit(0), 0)

    def test_execute_uses_buffered_limit(self) -> None:
        ledger = FakeLedger(gas_estimate=100_000)
        TransactionPipeline(ledger=ledger).execute(_signer(), CallSpec(to=RECIPIENT, value=1))
        self.assertEqual(ledger.sent[0][1], 120_000)

    def test_estimation_failure_leaves_limit_unset_and_submits_once(self) -> None:
        ledger = FakeLedger(gas_estimate=None)
        outcome = TransactionPipeline(ledger=ledger).execute(_signer(), CallSpec(to=RECIPIENT, value=1))
        self.assertEqual(len(ledger.sent), 1)
        self.assertIsNone(ledger.sent[0][1])
        self.assertTrue(outcome.gas_plan.is_unset)


class PreflightTests(unittest.TestCase):
    def test_zero_balance_fails_before_any_submission(self) -> None:
        ledger = FakeLedger(native_balance=0)
        pipeline = TransactionPipeline(ledger=ledger)
        with self.assertRaises(PreflightError) as ctx:
            pipeline.execute(
                _signer(),
                CallSpec(to=RECIPIENT, value=ONE_ETHER),
                preflight=PreflightRequirement(required=ONE_ETHER),
            )
        error = ctx.exception
        self.assertIsInstance(error, InsufficientBalanceError)
        self.assertEqual(error.status_code, 400)
        self.assertEqual(error.details["currentBalance"], "0")
        self.assertEqual(error.details["shortfall"], str(ONE_ETHER))
        self.assertNotIn("transactionHash", error.details)
        self.assertEqual(ledger.sent, [])
        self.assertNotIn("estimate_gas", [name for name, _ in ledger.calls])

    def test_token_preflight_reads_token_balance(self) -> None:
        ledger = FakeLedger(token_balance=5)
        pipeline = TransactionPipeline(ledger=ledger)
        with self.assertRaises(InsufficientBalanceError) as ctx:
            pipeline.check_balance(
                TEST_SIGNER_ADDRESS,
                PreflightRequirement(required=6, token_address=TOKEN, symbol="TST"),
            )
        self.assertEqual(ctx.exception.message, "Insufficient TST balance")
        self.assertEqual(ctx.exception.details["asset"], TOKEN)
        self.assertIn(("call", "balanceOf"), ledger.calls)

    def test_gas_requirement_with_zero_native_balance(self) -> None:
        ledger = FakeLedger(native_balance=0)
        with self.assertRaises(InsufficientBalanceError) as ctx:
            TransactionPipeline(ledger=ledger).check_balance(
                TEST_SIGNER_ADDRESS, PreflightRequirement(required=0, require_gas=True)
            )
        self.assertEqual(ctx.exception.message, "Insufficient balance for gas fees")


class SubmissionTests(unittest.TestCase):
    def test_rejected_broadcast_is_not_retried(self) -> None:
        ledger = FakeLedger()
        ledger.send_errors["native"] = SubmissionError(
            "Transaction submission failed: nonce too low",
            reason="nonce too low",
            provider_code=-32000,
        )
        with self.assertRaises(SubmissionError) as ctx:
            TransactionPipeline(ledger=ledger).execute(_signer(), CallSpec(to=RECIPIENT, value=1))
        self.assertEqual(ctx.exception.details["reason"], "nonce too low")
        self.assertEqual(ctx.exception.details["providerCode"], -32000)
        self.assertEqual([name for name, _ in ledger.calls].count("send_transaction"), 1)

    def test_reverted_receipt_raises_call_exception(self) -> None:
        ledger = FakeLedger()
        ledger.status_by_function["createCollection"] = 0
        with self.assertRaises(SubmissionError) as ctx:
            TransactionPipeline(ledger=ledger).execute(_signer(), _create_collection_call())
        self.assertEqual(ctx.exception.provider_code, "CALL_EXCEPTION")
        self.assertEqual(ctx.exception.details["transactionHash"], "0x" + f"{1:064x}")


class EventDecodingTests(unittest.TestCase):
    def test_first_matching_log_wins(self) -> None:
        other = "0x1010101010101010101010101010101010101010"
        ledger = FakeLedger()
        ledger.logs_by_function["createCollection"] = [
            encode_log(
                ERC20_ABI,
                "Transfer",
                {"from": TEST_SIGNER_ADDRESS, "to": RECIPIENT, "value": 7},
                address=TOKEN,
            ),
            _collection_created(COLLECTION, log_index=1),
            _collection_created(other, log_index=2),
        ]
        outcome = TransactionPipeline(ledger=ledger).execute(
            _signer(),
            _create_collection_call(),
            expect_event=EventExpectation(abi=NFT_FACTORY_ABI, name="CollectionCreated"),
        )
        self.assertIsNotNone(outcome.event)
        self.assertEqual(outcome.event.args["collectionAddress"], COLLECTION)
        self.assertEqual(outcome.event.log_index, 1)
        self.assertEqual(outcome.tx_hash, "0x" + f"{1:064x}")

    def test_absent_event_is_not_found(self) -> None:
        ledger = FakeLedger()
        with self.assertRaises(NotFoundError) as ctx:
            TransactionPipeline(ledger=ledger).execute(
                _signer(),
                _create_collection_call(),
                expect_event=EventExpectation(abi=NFT_FACTORY_ABI, name="CollectionCreated"),
            )
        self.assertIsInstance(ctx.exception, ExpectedEventNotFoundError)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(len(ledger.sent), 1)

    def test_erc20_and_erc721_transfer_are_told_apart(self) -> None:
        erc20_log = encode_log(
            ERC20_ABI,
            "Transfer",
            {"from": TEST_SIGNER_ADDRESS, "to": RECIPIENT, "value": 7},
            address=TOKEN,
        )
        nft_log = encode_log(
            NFT_COLLECTION_ABI,
            "Transfer",
            {"from": "0x" + "00" * 20, "to": RECIPIENT, "tokenId": 3},
            address=COLLECTION,
            log_index=1,
        )
        decoder = EventDecoder(NFT_COLLECTION_ABI)
        self.assertIsNone(decoder.decode(erc20_log))
        decoded = decoder.find_first([erc20_log, nft_log], "Transfer")
        self.assertIsNotNone(decoded)
        self.assertEqual(decoded.args["tokenId"], 3)
        self.assertEqual(decoded.address, COLLECTION)


class AllowanceTests(unittest.TestCase):
    def test_approval_runs_first_and_is_recorded(self) -> None:
        ledger = FakeLedger(allowance=0)
        pipeline = TransactionPipeline(ledger=ledger)
        outcome = pipeline.execute_with_allowance(
            _signer(),
            CallSpec(to=COLLECTION, abi=ERC20_ABI, function="transfer", args=(RECIPIENT, 10)),
            token_address=TOKEN,
            spender=COLLECTION,
            amount=10,
        )
        self.assertEqual(ledger.sent_functions, ["approve", "transfer"])
        self.assertIsNotNone(outcome.approval)
        self.assertEqual(outcome.approval.tx_hash, "0x" + f"{1:064x}")

    def test_sufficient_allowance_skips_approval(self) -> None:
        ledger = FakeLedger(allowance=10)
        outcome = TransactionPipeline(ledger=ledger).execute_with_allowance(
            _signer(),
            CallSpec(to=COLLECTION, abi=ERC20_ABI, function="transfer", args=(RECIPIENT, 10)),
            token_address=TOKEN,
            spender=COLLECTION,
            amount=10,
        )
        self.assertEqual(ledger.sent_functions, ["transfer"])
        self.assertIsNone(outcome.approval)

    def test_failure_after_approval_reports_approval_hash(self) -> None:
        ledger = FakeLedger(allowance=0)
        ledger.status_by_function["transfer"] = 0
        with self.assertRaises(SubmissionError) as ctx:
            TransactionPipeline(ledger=ledger).execute_with_allowance(
                _signer(),
                CallSpec(to=COLLECTION, abi=ERC20_ABI, function="transfer", args=(RECIPIENT, 10)),
                token_address=TOKEN,
                spender=COLLECTION,
                amount=10,
            )
        self.assertEqual(ctx.exception.details["approveTxHash"], "0x" + f"{1:064x}")


if __name__ == "__main__":
    unittest.main()
