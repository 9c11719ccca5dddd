"""Display names and pair-symbol helpers."""

DEFAULT_SETTLEMENT = "USDT"

# Display names for well-known pairs; anything else is shown by its base symbol
DISPLAY_NAMES: dict[str, str] = {
    "BTCUSDT": "Bitcoin",
    "ETHUSDT": "Ethereum",
    "BNBUSDT": "BNB",
    "SOLUSDT": "Solana",
    "XRPUSDT": "XRP",
    "ADAUSDT": "Cardano",
    "AVAXUSDT": "Avalanche",
    "DOGEUSDT": "Dogecoin",
    "DOTUSDT": "Polkadot",
    "MATICUSDT": "Polygon",
    "SHIBUSDT": "Shiba Inu",
    "LTCUSDT": "Litecoin",
    "LINKUSDT": "Chainlink",
    "ATOMUSDT": "Cosmos",
    "UNIUSDT": "Uniswap",
    "XLMUSDT": "Stellar",
    "NEARUSDT": "NEAR Protocol",
    "ALGOUSDT": "Algorand",
    "FILUSDT": "Filecoin",
    "APTUSDT": "Aptos",
    "ARBUSDT": "Arbitrum",
    "OPUSDT": "Optimism",
}


def base_symbol(pair: str, settlement: str = DEFAULT_SETTLEMENT) -> str:
    """Strip the settlement suffix: ``BTCUSDT`` -> ``BTC``."""
    pair = pair.upper().strip()
    if settlement and pair.endswith(settlement) and len(pair) > len(settlement):
        return pair[: -len(settlement)]
    return pair


def pair_symbol(base: str, settlement: str = DEFAULT_SETTLEMENT) -> str:
    """Inverse of base_symbol: ``BTC`` -> ``BTCUSDT``."""
    return f"{base.upper().strip()}{settlement}"


def display_name(pair: str, settlement: str = DEFAULT_SETTLEMENT) -> str:
    return DISPLAY_NAMES.get(pair.upper(), base_symbol(pair, settlement))
