MAX_UINT256 = (1 << 256) - 1

ABI_TRADING_MODULE = [
    {"inputs":[{"internalType":"address","name":"safe","type":"address"}],"name":"initializeCapital","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"internalType":"address","name":"safe","type":"address"}],"name":"getSafeStats","outputs":[
        {"internalType":"bool","name":"initialized","type":"bool"},
        {"internalType":"uint256","name":"initialCapital","type":"uint256"},
        {"internalType":"uint256","name":"currentCapital","type":"uint256"},
        {"internalType":"uint256","name":"profitTaken","type":"uint256"},
        {"internalType":"uint256","name":"unrealizedProfit","type":"uint256"}
    ],"stateMutability":"view","type":"function"},
    {"inputs":[{"internalType":"address","name":"safe","type":"address"},{"internalType":"address","name":"token","type":"address"}],"name":"isTokenWhitelisted","outputs":[{"internalType":"bool","name":"","type":"bool"}],"stateMutability":"view","type":"function"},
    {"inputs":[{"internalType":"address","name":"safe","type":"address"},{"internalType":"address","name":"token","type":"address"},{"internalType":"bool","name":"enabled","type":"bool"}],"name":"setTokenWhitelist","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"internalType":"address","name":"safe","type":"address"},{"internalType":"address[]","name":"tokens","type":"address[]"},{"internalType":"bool","name":"enabled","type":"bool"}],"name":"setTokenWhitelistBatch","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[
        {"internalType":"address","name":"safe","type":"address"},
        {"internalType":"address","name":"tokenIn","type":"address"},
        {"internalType":"address","name":"tokenOut","type":"address"},
        {"internalType":"uint256","name":"amountIn","type":"uint256"},
        {"internalType":"uint256","name":"minAmountOut","type":"uint256"},
        {"internalType":"uint24","name":"poolFee","type":"uint24"},
        {"internalType":"address","name":"profitReceiver","type":"address"}
    ],"name":"executeTrade","outputs":[{"internalType":"uint256","name":"","type":"uint256"}],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[
        {"internalType":"address","name":"safe","type":"address"},
        {"internalType":"address","name":"tokenIn","type":"address"},
        {"internalType":"address","name":"tokenOut","type":"address"},
        {"internalType":"uint256","name":"amountIn","type":"uint256"},
        {"internalType":"uint256","name":"minAmountOut","type":"uint256"},
        {"internalType":"uint24","name":"poolFee","type":"uint24"},
        {"internalType":"address","name":"agentOwner","type":"address"},
        {"internalType":"uint256","name":"entryValueUSDC","type":"uint256"}
    ],"name":"closePosition","outputs":[{"internalType":"uint256","name":"","type":"uint256"}],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[
        {"internalType":"address","name":"safe","type":"address"},
        {"internalType":"address","name":"to","type":"address"},
        {"internalType":"uint256","name":"value","type":"uint256"},
        {"internalType":"bytes","name":"data","type":"bytes"}
    ],"name":"executeFromModule","outputs":[{"internalType":"bool","name":"success","type":"bool"}],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"internalType":"address","name":"executor","type":"address"},{"internalType":"bool","name":"authorized","type":"bool"}],"name":"setExecutorAuthorization","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"internalType":"address","name":"dex","type":"address"},{"internalType":"bool","name":"whitelisted","type":"bool"}],"name":"setDexWhitelist","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"anonymous":False,"inputs":[
        {"indexed":True,"internalType":"address","name":"safe","type":"address"},
        {"indexed":True,"internalType":"address","name":"tokenIn","type":"address"},
        {"indexed":True,"internalType":"address","name":"tokenOut","type":"address"},
        {"indexed":False,"internalType":"uint256","name":"amountIn","type":"uint256"},
        {"indexed":False,"internalType":"uint256","name":"amountOut","type":"uint256"}
    ],"name":"TradeExecuted","type":"event"},
    {"anonymous":False,"inputs":[
        {"indexed":True,"internalType":"address","name":"safe","type":"address"},
        {"indexed":True,"internalType":"address","name":"agentOwner","type":"address"},
        {"indexed":False,"internalType":"uint256","name":"amount","type":"uint256"}
    ],"name":"ProfitShareDistributed","type":"event"},
    {"anonymous":False,"inputs":[
        {"indexed":True,"internalType":"address","name":"safe","type":"address"},
        {"indexed":False,"internalType":"uint256","name":"amount","type":"uint256"}
    ],"name":"CapitalInitialized","type":"event"},
]

ABI_ERC20 = [
    {"name":"balanceOf","outputs":[{"type":"uint256"}],"inputs":[{"name":"owner","type":"address"}],"stateMutability":"view","type":"function"},
    {"name":"allowance","outputs":[{"type":"uint256"}],"inputs":[{"name":"owner","type":"address"},{"name":"spender","type":"address"}],"stateMutability":"view","type":"function"},
    {"name":"approve","outputs":[{"type":"bool"}],"inputs":[{"name":"spender","type":"address"},{"name":"amount","type":"uint256"}],"stateMutability":"nonpayable","type":"function"},
    {"name":"decimals","outputs":[{"type":"uint8"}],"inputs":[],"stateMutability":"view","type":"function"},
    {"name":"symbol","outputs":[{"type":"string"}],"inputs":[],"stateMutability":"view","type":"function"},
]

ABI_SAFE = [
    {"inputs":[{"internalType":"address","name":"module","type":"address"}],"name":"isModuleEnabled","outputs":[{"internalType":"bool","name":"","type":"bool"}],"stateMutability":"view","type":"function"},
]

ABI_QUOTER_V2 = [
    {"inputs":[{"components":[
        {"internalType":"address","name":"tokenIn","type":"address"},
        {"internalType":"address","name":"tokenOut","type":"address"},
        {"internalType":"uint256","name":"amountIn","type":"uint256"},
        {"internalType":"uint24","name":"fee","type":"uint24"},
        {"internalType":"uint160","name":"sqrtPriceLimitX96","type":"uint160"}
    ],"internalType":"struct IQuoterV2.QuoteExactInputSingleParams","name":"params","type":"tuple"}],
     "name":"quoteExactInputSingle",
     "outputs":[{"internalType":"uint256","name":"amountOut","type":"uint256"},{"internalType":"uint160","name":"sqrtPriceX96After","type":"uint160"},{"internalType":"uint32","name":"initializedTicksCrossed","type":"uint32"},{"internalType":"uint256","name":"gasEstimate","type":"uint256"}],
     "stateMutability":"nonpayable","type":"function"},
]

ABI_SWAP_ROUTER = [
    {"inputs":[{"components":[
        {"internalType":"address","name":"tokenIn","type":"address"},
        {"internalType":"address","name":"tokenOut","type":"address"},
        {"internalType":"uint24","name":"fee","type":"uint24"},
        {"internalType":"address","name":"recipient","type":"address"},
        {"internalType":"uint256","name":"deadline","type":"uint256"},
        {"internalType":"uint256","name":"amountIn","type":"uint256"},
        {"internalType":"uint256","name":"amountOutMinimum","type":"uint256"},
        {"internalType":"uint160","name":"sqrtPriceLimitX96","type":"uint160"}
    ],"internalType":"struct ISwapRouter.ExactInputSingleParams","name":"params","type":"tuple"}],
     "name":"exactInputSingle",
     "outputs":[{"internalType":"uint256","name":"amountOut","type":"uint256"}],
     "stateMutability":"payable","type":"function"},
]
