# Both events carry a single non-indexed struct; only the component lists matter
# for decoding, the topic is keccak of the canonical tuple signature.

TRADE_COMPONENTS = [
    ("poolId",           "uint256"),
    ("trader",           "address"),
    ("sender",           "address"),
    ("tokenAddress",     "address"),
    ("tokenName",        "string"),
    ("tokenTicker",      "string"),
    ("tokenUri",         "string"),
    ("quoteAmount",      "uint256"),
    ("baseAmount",       "uint256"),
    ("fee",              "uint256"),
    ("side",             "uint256"),
    ("poolEthBalance",   "uint256"),
    ("poolTokenBalance", "uint256"),
    ("time",             "uint256"),
]

NEW_POOL_COMPONENTS = [
    ("poolId",         "uint256"),
    ("creator",        "address"),
    ("tokenAddress",   "address"),
    ("tokenDecimals",  "uint256"),
    ("nftName",        "string"),
    ("nftTicker",      "string"),
    ("uri",            "string"),
    ("nftDescription", "string"),
    ("conversionRate", "uint256"),
    ("tokenSupply",    "uint256"),
    ("tokenBalance",   "uint256"),
    ("ethBalance",     "uint256"),
    ("nftPrice",       "uint256"),
    ("feeRate",        "uint256"),
    ("mintable",       "uint256"),
    ("lpAmount",       "uint256"),
    ("time",           "uint256"),
]
