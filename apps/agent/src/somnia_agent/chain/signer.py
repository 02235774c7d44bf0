from __future__ import annotations

import binascii
from typing import Any, Iterable, List

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import is_address, to_checksum_address

from somnia_agent.errors import InvalidAddressError, ValidationError


def load_signer(private_key: str) -> LocalAccount:
    key = str(private_key or "").strip()
    if not key:
        raise ValidationError("privateKey is required.", details={"field": "privateKey"})
    if not key.startswith("0x"):
        key = f"0x{key}"
    try:
        return Account.from_key(key)
    except (ValueError, TypeError, binascii.Error) as exc:
        # Never echo the key back.
        raise ValidationError("privateKey is not a valid signing key.", details={"field": "privateKey"}) from exc


def invalid_addresses(values: Iterable[Any]) -> List[str]:
    return [str(item) for item in values if not isinstance(item, str) or not is_address(item)]


def require_address(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddressError([str(value)], field=field)
    return to_checksum_address(value)


def same_address(left: str, right: str) -> bool:
    return str(left or "").lower() == str(right or "").lower()
