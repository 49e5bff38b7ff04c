
"""
区块链交互模块

包含:
- Web3Client: Web3 RPC 客户端 (Polygon / Base)
- CollateralFacet: Aavegotchi Diamond 抵押品 Facet 读写
"""

from .web3_client import Web3Client
from .collateral_facet import (
    COLLATERAL_FACET_ABI,
    CollateralFacet,
    CollateralFacetError,
    TransactionRevertedError,
)
from .models import (
    CollateralBalance,
    CollateralType,
    CollateralTypeInfo,
    ExperienceTransferEvent,
    StakeEvent,
    TransactionResult,
)

__all__ = [
    "Web3Client",
    # CollateralFacet
    "COLLATERAL_FACET_ABI",
    "CollateralFacet",
    "CollateralFacetError",
    "TransactionRevertedError",
    # 数据结构
    "CollateralBalance",
    "CollateralType",
    "CollateralTypeInfo",
    "ExperienceTransferEvent",
    "StakeEvent",
    "TransactionResult",
]
