"""
CollateralFacet 数据结构

合约返回的都是 ABI 元组，这里只做字段命名，不做任何业务校验
(含义和约束由链上合约决定)
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Sequence, Any

from web3 import Web3


def _bytes3_to_hex(value: Any) -> str:
    """bytes3 颜色值 -> "0x" 开头的 hex 字符串"""
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return Web3.to_hex(value)


@dataclass
class CollateralTypeInfo:
    """抵押品类型详情 (AavegotchiCollateralTypeInfo)"""
    modifiers: List[int]      # 6 个特征修正值 (int16)
    primary_color: str
    secondary_color: str
    cheek_color: str
    svg_id: int
    eye_shape_svg_id: int
    conversion_rate: int      # 相对 1 USD 的兑换比率，由 DAO 更新
    delisted: bool

    @classmethod
    def from_tuple(cls, raw: Sequence[Any]) -> "CollateralTypeInfo":
        return cls(
            modifiers=list(raw[0]),
            primary_color=_bytes3_to_hex(raw[1]),
            secondary_color=_bytes3_to_hex(raw[2]),
            cheek_color=_bytes3_to_hex(raw[3]),
            svg_id=raw[4],
            eye_shape_svg_id=raw[5],
            conversion_rate=raw[6],
            delisted=raw[7],
        )

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class CollateralType:
    """抵押品地址 + 详情 (AavegotchiCollateralTypeIO)"""
    collateral_type: str
    collateral_type_info: CollateralTypeInfo

    @classmethod
    def from_tuple(cls, raw: Sequence[Any]) -> "CollateralType":
        return cls(
            collateral_type=raw[0],
            collateral_type_info=CollateralTypeInfo.from_tuple(raw[1]),
        )

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class CollateralBalance:
    """Aavegotchi 的抵押品余额"""
    collateral_type: str  # 抵押品合约地址
    escrow: str           # 该 NFT 的托管合约地址
    balance: int          # 原始余额，未除以 decimals

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class TransactionResult:
    """写入交易结果"""
    tx_hash: str
    block_number: int
    gas_used: int
    gas_price: int
    success: bool = True

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class StakeEvent:
    """IncreaseStake / DecreaseStake 事件"""
    event: str
    token_id: int
    amount: int
    block_number: int
    transaction_hash: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ExperienceTransferEvent:
    """ExperienceTransfer 事件 (decreaseAndDestroy 时触发)"""
    from_token_id: int
    to_token_id: int
    experience: int
    block_number: int
    transaction_hash: str

    def to_dict(self) -> Dict:
        return asdict(self)
