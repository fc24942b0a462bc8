"""Core domain types: assets, policy models and protocols."""
