"""
gotchi-collateral: Aavegotchi CollateralFacet 的 Python 客户端
"""

from .blockchain import (
    CollateralFacet,
    CollateralFacetError,
    TransactionRevertedError,
    Web3Client,
)

__version__ = "0.1.0"

__all__ = [
    "CollateralFacet",
    "CollateralFacetError",
    "TransactionRevertedError",
    "Web3Client",
]
