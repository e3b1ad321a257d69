"""Asset identifiers, fixed-point units and protocol constants."""

# Asset symbols
DAI = "DAI"
USDC = "USDC"
AAVE = "AAVE"
WETH = "WETH"
LINK = "LINK"
WBTC = "WBTC"
USDT = "USDT"
EURS = "EURS"

# Default receiver of the protocol's share of interest
TREASURY = "treasury"

# Wad (1e18): general fixed-point amounts
WAD = 10**18
HALF_WAD = WAD // 2

# Ray (1e27): Aave's fixed-point unit for rates and indices
RAY = 10**27
HALF_RAY = RAY // 2
WAD_RAY_RATIO = 10**9

# Basis points: 10_000 = 100%
PERCENTAGE_FACTOR = 10_000
HALF_PERCENTAGE_FACTOR = PERCENTAGE_FACTOR // 2

# Aave uses a 365-day year for rate annualization
SECONDS_PER_YEAR = 365 * 24 * 3600

MAX_UINT256 = 2**256 - 1

MAX_NUMBER_RESERVES = 128

# Interest rate curve bounds (bps)
MIN_OPTIMAL_POINT = 1_00
MAX_OPTIMAL_POINT = 99_00
MAX_BORROW_RATE = 1000_00

# Largest cap expressible in the 36-bit configuration fields (whole tokens)
MAX_VALID_SUPPLY_CAP = 68_719_476_735
MAX_VALID_BORROW_CAP = 68_719_476_735
