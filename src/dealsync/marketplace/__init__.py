"""Marketplace data layer -- license, transaction and snapshot models."""
