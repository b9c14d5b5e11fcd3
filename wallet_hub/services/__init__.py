"""Service modules"""
from .session import WalletSession
from .transfers import TransferService
from .wallet import WalletService

__all__ = ["WalletSession", "TransferService", "WalletService"]
