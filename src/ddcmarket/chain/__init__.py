"""
Chain interaction layer for ddcmarket.

Provides the async JSON-RPC client, ABI management, signing authorities and
transaction utilities used by the contract managers.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""
