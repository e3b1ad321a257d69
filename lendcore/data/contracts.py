"""Contract addresses and minimal ABIs for Aave V3 on-chain data fetching."""

# ---------------------------------------------------------------------------
# Asset addresses (Ethereum mainnet)
# ---------------------------------------------------------------------------
ASSET_ADDRESSES: dict[str, str] = {
    "DAI": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "AAVE": "0x7Fc66500c84A76Ad7e9c93437bFc5Ac33E2DDaE9",
    "WETH": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    "LINK": "0x514910771AF9Ca656af840dff83E8264EcF986CA",
    "WBTC": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    "EURS": "0xdB25f211AB05b1c97D595516F45794528a807ad8",
}

# ---------------------------------------------------------------------------
# Aave V3 contract addresses
# ---------------------------------------------------------------------------
AAVE_POOL_DATA_PROVIDER = "0x0a16f2FCC0D44FaE41cc54e079281D84A363bECD"
AAVE_POOL = "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2"

# ---------------------------------------------------------------------------
# Minimal ABIs (only the view functions we call)
# ---------------------------------------------------------------------------

POOL_DATA_PROVIDER_ABI = [
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getReserveConfigurationData",
        "outputs": [
            {"name": "decimals", "type": "uint256"},
            {"name": "ltv", "type": "uint256"},
            {"name": "liquidationThreshold", "type": "uint256"},
            {"name": "liquidationBonus", "type": "uint256"},
            {"name": "reserveFactor", "type": "uint256"},
            {"name": "usageAsCollateralEnabled", "type": "bool"},
            {"name": "borrowingEnabled", "type": "bool"},
            {"name": "stableBorrowRateEnabled", "type": "bool"},
            {"name": "isActive", "type": "bool"},
            {"name": "isFrozen", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getPaused",
        "outputs": [{"name": "isPaused", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getReserveCaps",
        "outputs": [
            {"name": "borrowCap", "type": "uint256"},
            {"name": "supplyCap", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getReserveData",
        "outputs": [
            {"name": "unbacked", "type": "uint256"},
            {"name": "accruedToTreasuryScaled", "type": "uint256"},
            {"name": "totalAToken", "type": "uint256"},
            {"name": "totalStableDebt", "type": "uint256"},
            {"name": "totalVariableDebt", "type": "uint256"},
            {"name": "liquidityRate", "type": "uint256"},
            {"name": "variableBorrowRate", "type": "uint256"},
            {"name": "stableBorrowRate", "type": "uint256"},
            {"name": "averageStableBorrowRate", "type": "uint256"},
            {"name": "liquidityIndex", "type": "uint256"},
            {"name": "variableBorrowIndex", "type": "uint256"},
            {"name": "lastUpdateTimestamp", "type": "uint40"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getInterestRateStrategyAddress",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

POOL_ABI = [
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getVirtualUnderlyingBalance",
        "outputs": [{"name": "", "type": "uint128"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Aave V3.2 rate strategy: getInterestRateDataBps(address reserve) with bps values
RATE_STRATEGY_ABI_V3 = [
    {
        "inputs": [{"name": "reserve", "type": "address"}],
        "name": "getInterestRateDataBps",
        "outputs": [
            {
                "components": [
                    {"name": "optimalUsageRatio", "type": "uint16"},
                    {"name": "baseVariableBorrowRate", "type": "uint32"},
                    {"name": "variableRateSlope1", "type": "uint32"},
                    {"name": "variableRateSlope2", "type": "uint32"},
                ],
                "name": "",
                "type": "tuple",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

# Aave V3.0/V3.1 rate strategy: returns a struct via getInterestRateData()
RATE_STRATEGY_ABI_V2 = [
    {
        "inputs": [],
        "name": "getInterestRateData",
        "outputs": [
            {
                "components": [
                    {"name": "optimalUsageRatio", "type": "uint256"},
                    {"name": "baseVariableBorrowRate", "type": "uint256"},
                    {"name": "variableRateSlope1", "type": "uint256"},
                    {"name": "variableRateSlope2", "type": "uint256"},
                ],
                "name": "",
                "type": "tuple",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

# Older Aave V3 rate strategy: individual RAY-returning getters
RATE_STRATEGY_ABI_V1 = [
    {
        "inputs": [],
        "name": "OPTIMAL_USAGE_RATIO",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getBaseVariableBorrowRate",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getVariableRateSlope1",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getVariableRateSlope2",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]
