"""Volatility-aware portfolio rebalancer for DEX token baskets."""
