from .holding import PortfolioHolding
