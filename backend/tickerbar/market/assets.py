"""Display names and glyphs for well-known assets, keyed by base symbol."""

from __future__ import annotations

from .models import Provider

# symbol -> (display name, glyph)
KNOWN_ASSETS: dict[str, tuple[str, str]] = {
    # Crypto
    "BTC": ("Bitcoin", "₿"),
    "ETH": ("Ethereum", "Ξ"),
    "SOL": ("Solana", "◎"),
    "ADA": ("Cardano", "🅰️"),
    "DOT": ("Polkadot", "🔴"),
    "LINK": ("Chainlink", "🔗"),
    "AVAX": ("Avalanche", "🔺"),
    "XRP": ("XRP", "💧"),
    "LTC": ("Litecoin", "🪙"),
    "MATIC": ("Polygon", "🔷"),
    "POL": ("Polygon", "🔷"),
    "ATOM": ("Cosmos", "⚛️"),
    "UNI": ("Uniswap", "🦄"),
    "XLM": ("Stellar", "⭐"),
    "FIL": ("Filecoin", "📁"),
    "ALGO": ("Algorand", "🔺"),
    "NEAR": ("NEAR Protocol", "🔮"),
    "APT": ("Aptos", "🚀"),
    "OP": ("Optimism", "🔴"),
    "ARB": ("Arbitrum", "🔵"),
    "SUI": ("Sui", "🌊"),
    "INJ": ("Injective", "💉"),
    "AAVE": ("Aave", "👻"),
    "MKR": ("Maker", "🎯"),
    "CRV": ("Curve", "〰️"),
    "DOGE": ("Dogecoin", "🐕"),
    "SHIB": ("Shiba Inu", "🐶"),
    "PEPE": ("Pepe", "🐸"),
    "WIF": ("dogwifhat", "🐕"),
    "BONK": ("Bonk", "🐕"),
    "RENDER": ("Render", "🎨"),
    "FET": ("Fetch.ai", "🤖"),
    "TIA": ("Celestia", "✨"),
    "JUP": ("Jupiter", "🪐"),
    "WLD": ("Worldcoin", "🌍"),
    "ENA": ("Ethena", "🔷"),
    "HBAR": ("Hedera", "🌀"),
    "ICP": ("Internet Computer", "∞"),
    "TRUMP": ("Trump", "🇺🇸"),
    "HYPE": ("Hyperliquid", "🔥"),
    "TAO": ("Bittensor", "🧠"),
    "ONDO": ("Ondo", "🏦"),
    "PENDLE": ("Pendle", "📈"),
    "TRX": ("TRON", "🔺"),
    "TON": ("Toncoin", "💎"),
    "PURR": ("Purr", "🐱"),
    "HFUN": ("HyperFun", "🎉"),
    "USDC": ("USD Coin", "💵"),
    # Stocks
    "TSLA": ("Tesla", "🚗"),
    "NVDA": ("NVIDIA", "🎮"),
    "AAPL": ("Apple", "🍎"),
    "META": ("Meta", "📘"),
    "GOOGL": ("Google", "🔍"),
    "GOOG": ("Alphabet", "🔍"),
    "AMZN": ("Amazon", "📦"),
    "MSFT": ("Microsoft", "💻"),
    "AMD": ("AMD", "💻"),
    "COIN": ("Coinbase", "🪙"),
    "PLTR": ("Palantir", "🔮"),
    "HOOD": ("Robinhood", "🏹"),
    "INTC": ("Intel", "💾"),
    "MSTR": ("MicroStrategy", "📊"),
    "BRK.B": ("Berkshire B", "🏛️"),
    "LLY": ("Eli Lilly", "💊"),
    "V": ("Visa", "💳"),
    "JPM": ("JPMorgan", "🏦"),
    "XOM": ("Exxon", "⛽"),
    "MA": ("Mastercard", "💳"),
    "ORCL": ("Oracle", "☁️"),
    "COST": ("Costco", "🛒"),
    "NFLX": ("Netflix", "🎬"),
    "WMT": ("Walmart", "🛒"),
    "AVGO": ("Broadcom", "📡"),
    "DIS": ("Disney", "🏰"),
    # Commodities and indices
    "GOLD": ("Gold", "🥇"),
    "SILVER": ("Silver", "🥈"),
    "OIL": ("Oil", "🛢️"),
    "XYZ100": ("HLP Index", "📈"),
    "SPY": ("S&P 500", "📊"),
}

# Glyph for symbols missing from KNOWN_ASSETS
DEFAULT_GLYPHS: dict[Provider, str] = {
    Provider.SPOT_EXCHANGE: "💰",
    Provider.PERPETUALS: "📈",
    Provider.SPOT_ON_PERP_VENUE: "🪙",
    Provider.AUXILIARY_DEX: "📊",
    Provider.EQUITIES_SCANNER: "📈",
}


def describe(symbol: str, provider: Provider, fallback_name: str | None = None) -> tuple[str, str]:
    """Return ``(display_name, glyph)`` for a base symbol.

    Unknown symbols are named after ``fallback_name`` (or the symbol itself)
    and get the provider's generic glyph.
    """
    known = KNOWN_ASSETS.get(symbol)
    if known:
        return known
    return fallback_name or symbol, DEFAULT_GLYPHS[provider]
