"""Auction core: configuration, ledger, lifecycle controller"""
