from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import structlog
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from somnia_agent.errors import NetworkError, SubmissionError
from somnia_agent.state.models import CallSpec

logger = structlog.get_logger(__name__)


class LedgerClient(Protocol):
    """Ledger RPC boundary used by the transaction pipeline and read-only tools."""

    def chain_id(self) -> int: ...

    def is_reachable(self) -> bool: ...

    def native_balance(self, address: str) -> int: ...

    def transaction_count(self, address: str) -> int: ...

    def call(self, call: CallSpec) -> Any: ...

    def estimate_gas(self, sender: str, call: CallSpec) -> int: ...

    def send_transaction(self, signer: Any, call: CallSpec, *, gas_limit: Optional[int]) -> str: ...

    def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]: ...


def _rpc_error_details(exc: BaseException) -> Tuple[str, Any]:
    reason = str(getattr(exc, "message", "") or exc)
    code: Any = None
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, Mapping):
        error = response.get("error")
        if isinstance(error, Mapping):
            reason = str(error.get("message") or reason)
            code = error.get("code")
    elif exc.args and isinstance(exc.args[0], Mapping):
        error = exc.args[0]
        reason = str(error.get("message") or reason)
        code = error.get("code")
    if isinstance(exc, ContractLogicError) and code is None:
        code = "CALL_EXCEPTION"
    return reason, code


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value
    return Web3.to_hex(value)


def receipt_to_payload(receipt: Mapping[str, Any]) -> Dict[str, Any]:
    logs: List[Dict[str, Any]] = []
    for item in list(receipt.get("logs") or []):
        logs.append(
            {
                "address": str(item.get("address") or ""),
                "topics": [_hex(topic) for topic in list(item.get("topics") or [])],
                "data": _hex(item.get("data") or "0x"),
                "logIndex": int(item.get("logIndex") or 0),
            }
        )
    return {
        "transactionHash": _hex(receipt.get("transactionHash") or ""),
        "blockNumber": int(receipt.get("blockNumber") or 0),
        "gasUsed": int(receipt.get("gasUsed") or 0),
        "status": int(receipt.get("status", 1)),
        "logs": logs,
    }


class Web3LedgerClient:
    """JSON-RPC ledger client over web3.py's HTTP provider."""

    def __init__(
        self,
        *,
        rpc_url: str,
        request_timeout_seconds: float,
        receipt_timeout_seconds: Optional[float] = None,
        receipt_poll_seconds: float = 1.0,
    ) -> None:
        self._rpc_url = rpc_url
        self._w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout_seconds})
        )
        self._receipt_timeout = (
            math.inf if receipt_timeout_seconds is None else float(receipt_timeout_seconds)
        )
        self._receipt_poll = float(receipt_poll_seconds)
        self._chain_id: Optional[int] = None

    def _read(self, label: str, fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except (Web3Exception, ValueError, OSError) as exc:
            reason, code = _rpc_error_details(exc)
            raise NetworkError(f"{label} failed: {reason}", reason=reason, provider_code=code) from exc

    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self._read("eth_chainId", lambda: self._w3.eth.chain_id))
        return self._chain_id

    def is_reachable(self) -> bool:
        try:
            return bool(self._w3.is_connected())
        except (Web3Exception, OSError):
            return False

    def native_balance(self, address: str) -> int:
        return int(self._read("eth_getBalance", self._w3.eth.get_balance, to_checksum_address(address)))

    def transaction_count(self, address: str) -> int:
        return int(
            self._read("eth_getTransactionCount", self._w3.eth.get_transaction_count, to_checksum_address(address))
        )

    def _bound_function(self, call: CallSpec) -> Any:
        contract = self._w3.eth.contract(address=to_checksum_address(call.to), abi=list(call.abi))
        return contract.get_function_by_name(str(call.function))(*call.args)

    def call(self, call: CallSpec) -> Any:
        return self._read(f"{call.function}()", lambda: self._bound_function(call).call())

    def estimate_gas(self, sender: str, call: CallSpec) -> int:
        params = {"from": to_checksum_address(sender), "value": int(call.value)}
        if call.is_native_send:
            params["to"] = to_checksum_address(call.to)
            return int(self._read("eth_estimateGas", self._w3.eth.estimate_gas, params))
        return int(self._read("eth_estimateGas", lambda: self._bound_function(call).estimate_gas(params)))

    def _build_transaction(self, sender: str, call: CallSpec, gas_limit: Optional[int]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "from": sender,
            "value": int(call.value),
            "nonce": self._w3.eth.get_transaction_count(sender, "pending"),
            "chainId": self.chain_id(),
        }
        if gas_limit is not None:
            params["gas"] = int(gas_limit)
        if call.is_native_send:
            params["to"] = to_checksum_address(call.to)
            params["gasPrice"] = self._w3.eth.gas_price
            if "gas" not in params:
                params["gas"] = self._w3.eth.estimate_gas(
                    {"from": sender, "to": params["to"], "value": params["value"]}
                )
            return params
        # build_transaction lets the node estimate gas when no limit is set.
        return self._bound_function(call).build_transaction(params)

    def send_transaction(self, signer: LocalAccount, call: CallSpec, *, gas_limit: Optional[int]) -> str:
        sender = to_checksum_address(signer.address)
        try:
            tx = self._build_transaction(sender, call, gas_limit)
            signed = signer.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError, OSError) as exc:
            reason, code = _rpc_error_details(exc)
            raise SubmissionError(
                f"Transaction submission failed: {reason}",
                reason=reason,
                provider_code=code,
                details={"step": call.label or call.function or "transfer"},
            ) from exc
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._receipt_timeout,
                poll_latency=self._receipt_poll,
            )
        except TimeExhausted as exc:
            raise NetworkError(
                f"Transaction {tx_hash} was not confirmed in time.",
                reason=str(exc),
                provider_code="TIMEOUT",
            ) from exc
        except (Web3Exception, ValueError, OSError) as exc:
            reason, code = _rpc_error_details(exc)
            raise NetworkError(
                f"Waiting for {tx_hash} failed: {reason}", reason=reason, provider_code=code
            ) from exc
        return receipt_to_payload(receipt)
