from .provider import MarketDataProvider, YahooMarketData, get_market_data_provider

__all__ = ["MarketDataProvider", "YahooMarketData", "get_market_data_provider"]
