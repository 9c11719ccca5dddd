"""Seed prices and per-pair parameters for the offline ticker simulator."""

# Rough starting prices (quote currency) for the default simulated universe
SEED_PRICES: dict[str, float] = {
    "BTCUSDT": 65000.00,
    "ETHUSDT": 3400.00,
    "BNBUSDT": 580.00,
    "SOLUSDT": 150.00,
    "XRPUSDT": 0.52,
    "ADAUSDT": 0.45,
    "AVAXUSDT": 35.00,
    "DOGEUSDT": 0.15,
    "DOTUSDT": 7.20,
    "LINKUSDT": 17.50,
    "LTCUSDT": 85.00,
    "SHIBUSDT": 0.000024,
}

# Typical 24h base-asset volume, used to seed and drift the rolling volume
SEED_VOLUMES: dict[str, float] = {
    "BTCUSDT": 25_000.0,
    "ETHUSDT": 350_000.0,
    "BNBUSDT": 600_000.0,
    "SOLUSDT": 4_000_000.0,
    "XRPUSDT": 900_000_000.0,
    "ADAUSDT": 400_000_000.0,
    "AVAXUSDT": 6_000_000.0,
    "DOGEUSDT": 2_500_000_000.0,
    "DOTUSDT": 20_000_000.0,
    "LINKUSDT": 10_000_000.0,
    "LTCUSDT": 2_000_000.0,
    "SHIBUSDT": 9_000_000_000_000.0,
}

# Per-pair GBM parameters
# sigma: annualized volatility (crypto runs far hotter than equities)
# mu: annualized drift
PAIR_PARAMS: dict[str, dict[str, float]] = {
    "BTCUSDT": {"sigma": 0.55, "mu": 0.10},
    "ETHUSDT": {"sigma": 0.70, "mu": 0.10},
    "BNBUSDT": {"sigma": 0.65, "mu": 0.08},
    "SOLUSDT": {"sigma": 0.95, "mu": 0.12},
    "XRPUSDT": {"sigma": 0.85, "mu": 0.05},
    "ADAUSDT": {"sigma": 0.90, "mu": 0.05},
    "AVAXUSDT": {"sigma": 1.00, "mu": 0.06},
    "DOGEUSDT": {"sigma": 1.20, "mu": 0.05},  # Meme-driven, very noisy
    "DOTUSDT": {"sigma": 0.90, "mu": 0.04},
    "LINKUSDT": {"sigma": 0.90, "mu": 0.06},
    "LTCUSDT": {"sigma": 0.75, "mu": 0.03},
    "SHIBUSDT": {"sigma": 1.40, "mu": 0.05},
}

# Parameters for pairs not listed above
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.90, "mu": 0.05}
DEFAULT_VOLUME = 5_000_000.0

# Correlation groups for the simulator's Cholesky decomposition
CORRELATION_GROUPS: dict[str, set[str]] = {
    "majors": {"BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT"},
    "memes": {"DOGEUSDT", "SHIBUSDT"},
}

# Correlation coefficients
INTRA_MAJORS_CORR = 0.8  # Majors track BTC closely
INTRA_MEMES_CORR = 0.7
CROSS_GROUP_CORR = 0.5  # Everything still moves with the market
