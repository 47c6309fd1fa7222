"""Contract ABIs used by the web3 signer, keyed by ContractRef.name.

Only the functions this package calls are listed.
"""

from __future__ import annotations


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[str], mutability: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": arg, "type": typ} for arg, typ in inputs],
        "outputs": [{"name": "", "type": typ} for typ in outputs],
    }


ERC20_ABI = [
    _fn("balanceOf", [("owner", "address")], ["uint256"], "view"),
    _fn("allowance", [("owner", "address"), ("spender", "address")], ["uint256"], "view"),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], ["bool"], "nonpayable"),
]

POOL_ABI = [
    _fn("balances", [("i", "uint256")], ["uint256"], "view"),
    _fn("get_virtual_price", [], ["uint256"], "view"),
    _fn(
        "add_liquidity",
        [("amounts", "uint256[]"), ("min_mint_amount", "uint256"), ("receiver", "address")],
        ["uint256"],
        "nonpayable",
    ),
    _fn(
        "remove_liquidity_one_coin",
        [("burn_amount", "uint256"), ("i", "int128"), ("min_received", "uint256"), ("receiver", "address")],
        ["uint256"],
        "nonpayable",
    ),
    _fn("calc_withdraw_one_coin", [("burn_amount", "uint256"), ("i", "int128")], ["uint256"], "view"),
]

GATEWAY_ABI = [
    {
        "type": "function",
        "name": "depositAndCall",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "receiver", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "asset", "type": "address"},
            {"name": "payload", "type": "bytes"},
            {
                "name": "revertOptions",
                "type": "tuple",
                "components": [
                    {"name": "revertAddress", "type": "address"},
                    {"name": "callOnRevert", "type": "bool"},
                    {"name": "abortAddress", "type": "address"},
                    {"name": "revertMessage", "type": "bytes"},
                    {"name": "onRevertGasLimit", "type": "uint256"},
                ],
            },
        ],
        "outputs": [],
    },
]

WITHDRAWER_ABI = [
    _fn(
        "withdrawToChain",
        [
            ("targetChainId", "uint256"),
            ("recipient", "bytes"),
            ("amount", "uint256"),
            ("minAmountOut", "uint256"),
            ("maxSwapAmount", "uint256"),
        ],
        [],
        "nonpayable",
    ),
    _fn("getUSDCForChain", [("chainId", "uint256")], ["address"], "view"),
]

ABIS: dict[str, list[dict]] = {
    "erc20": ERC20_ABI,
    "pool": POOL_ABI,
    "gateway": GATEWAY_ABI,
    "withdrawer": WITHDRAWER_ABI,
}
