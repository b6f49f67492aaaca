"""Copy-trading bot: mirror a target wallet's Polymarket trades."""
