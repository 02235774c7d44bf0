from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

AbiEntry = Dict[str, Any]
Param = Tuple[str, str]


def _params(items: Sequence[Param]) -> List[Dict[str, Any]]:
    return [{"name": name, "type": abi_type} for name, abi_type in items]


def function(
    name: str,
    inputs: Sequence[Param] = (),
    outputs: Sequence[Param] = (),
    *,
    mutability: str = "nonpayable",
) -> AbiEntry:
    return {
        "type": "function",
        "name": name,
        "inputs": _params(inputs),
        "outputs": _params(outputs),
        "stateMutability": mutability,
    }


def event(name: str, inputs: Sequence[Tuple[str, str, bool]]) -> AbiEntry:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": arg_name, "type": abi_type, "indexed": bool(indexed)}
            for arg_name, abi_type, indexed in inputs
        ],
    }


ERC20_ABI: List[AbiEntry] = [
    function("name", outputs=[("", "string")], mutability="view"),
    function("symbol", outputs=[("", "string")], mutability="view"),
    function("decimals", outputs=[("", "uint8")], mutability="view"),
    function("totalSupply", outputs=[("", "uint256")], mutability="view"),
    function("balanceOf", [("account", "address")], [("", "uint256")], mutability="view"),
    function(
        "allowance",
        [("owner", "address"), ("spender", "address")],
        [("", "uint256")],
        mutability="view",
    ),
    function("transfer", [("to", "address"), ("amount", "uint256")], [("", "bool")]),
    function("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")]),
    event("Transfer", [("from", "address", True), ("to", "address", True), ("value", "uint256", False)]),
    event(
        "Approval",
        [("owner", "address", True), ("spender", "address", True), ("value", "uint256", False)],
    ),
]

TOKEN_FACTORY_ABI: List[AbiEntry] = [
    function(
        "createToken",
        [("name", "string"), ("symbol", "string"), ("initialSupply", "uint256")],
        [("", "address")],
    ),
    function(
        "getTokenInfo",
        [("tokenAddress", "address")],
        [
            ("creator", "address"),
            ("name", "string"),
            ("symbol", "string"),
            ("initialSupply", "uint256"),
            ("deployedAt", "uint256"),
            ("currentSupply", "uint256"),
            ("owner", "address"),
        ],
        mutability="view",
    ),
    event(
        "TokenCreated",
        [
            ("tokenAddress", "address", True),
            ("creator", "address", True),
            ("name", "string", False),
            ("symbol", "string", False),
            ("initialSupply", "uint256", False),
            ("timestamp", "uint256", False),
        ],
    ),
]

NFT_FACTORY_ABI: List[AbiEntry] = [
    function(
        "createCollection",
        [("name", "string"), ("symbol", "string"), ("baseURI", "string")],
        [("", "address")],
        mutability="payable",
    ),
    event(
        "CollectionCreated",
        [
            ("collectionAddress", "address", True),
            ("creator", "address", True),
            ("name", "string", False),
            ("symbol", "string", False),
        ],
    ),
]

NFT_COLLECTION_ABI: List[AbiEntry] = [
    function("owner", outputs=[("", "address")], mutability="view"),
    function("name", outputs=[("", "string")], mutability="view"),
    function("symbol", outputs=[("", "string")], mutability="view"),
    function(
        "safeMint",
        [("to", "address"), ("uri", "string")],
        [("", "uint256")],
        mutability="payable",
    ),
    event(
        "Transfer",
        [("from", "address", True), ("to", "address", True), ("tokenId", "uint256", True)],
    ),
]

DAO_FACTORY_ABI: List[AbiEntry] = [
    function(
        "createDAO",
        [("name", "string"), ("votingPeriod", "uint256"), ("quorumPercentage", "uint256")],
        [("", "address")],
    ),
    event(
        "DAOCreated",
        [
            ("daoAddress", "address", True),
            ("creator", "address", True),
            ("name", "string", False),
            ("votingPeriod", "uint256", False),
            ("quorumPercentage", "uint256", False),
        ],
    ),
]

AIRDROP_ABI: List[AbiEntry] = [
    function(
        "airdropNative",
        [("recipients", "address[]"), ("amountEach", "uint256")],
        mutability="payable",
    ),
    function(
        "airdropToken",
        [("token", "address"), ("recipients", "address[]"), ("amountEach", "uint256")],
    ),
    event(
        "AirdropExecuted",
        [
            ("sender", "address", True),
            ("token", "address", True),
            ("recipientCount", "uint256", False),
            ("amountEach", "uint256", False),
        ],
    ),
]

SWAP_ROUTER_ABI: List[AbiEntry] = [
    {
        "type": "function",
        "name": "exactInputSingle",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": _params(
                    [
                        ("tokenIn", "address"),
                        ("tokenOut", "address"),
                        ("fee", "uint24"),
                        ("recipient", "address"),
                        ("amountIn", "uint256"),
                        ("amountOutMinimum", "uint256"),
                        ("sqrtPriceLimitX96", "uint160"),
                    ]
                ),
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
        "stateMutability": "payable",
    }
]

YIELD_VAULT_ABI: List[AbiEntry] = [
    function("asset", outputs=[("", "address")], mutability="view"),
    function(
        "deposit",
        [("assets", "uint256"), ("receiver", "address")],
        [("shares", "uint256")],
    ),
    event(
        "Deposit",
        [
            ("sender", "address", True),
            ("owner", "address", True),
            ("assets", "uint256", False),
            ("shares", "uint256", False),
        ],
    ),
]
