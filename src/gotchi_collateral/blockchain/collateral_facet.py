"""
CollateralFacet 合约交互模块
Aavegotchi Diamond 的抵押品 Facet：查询抵押品类型/余额，增减质押，销毁并转移经验

链上接口:

  EVENT
   - IncreaseStake(uint256 indexed _tokenId, uint256 _stakeAmount)
   - DecreaseStake(uint256 indexed _tokenId, uint256 _reduceAmount)
   - ExperienceTransfer(uint256 indexed _fromTokenId, uint256 indexed _toTokenId, uint256 experience)

  READ
   - collaterals(uint256 _hauntId) returns (address[])
   - collateralInfo(uint256 _hauntId, uint256 _collateralId) returns (AavegotchiCollateralTypeIO)
   - getCollateralInfo(uint256 _hauntId) returns (AavegotchiCollateralTypeIO[])
   - getAllCollateralTypes() returns (address[])
   - collateralBalance(uint256 _tokenId) returns (address collateralType_, address escrow_, uint256 balance_)

  WRITE
   - increaseStake(uint256 _tokenId, uint256 _stakeAmount)            onlyAavegotchiOwner
   - decreaseStake(uint256 _tokenId, uint256 _reduceAmount)           onlyUnlocked onlyAavegotchiOwner
   - decreaseAndDestroy(uint256 _tokenId, uint256 _toId)              onlyUnlocked onlyAavegotchiOwner
   - setCollateralEyeShapeSvgId(address _collateralToken, uint8 _svgId)  onlyDaoOrOwner
"""

import os
from typing import Any, Dict, List, Optional, Tuple

from web3 import Web3
from web3.contract import Contract
from dotenv import load_dotenv

from .models import (
    CollateralBalance,
    CollateralType,
    ExperienceTransferEvent,
    StakeEvent,
    TransactionResult,
)
from .web3_client import Web3Client
from ..utils.block_utils import get_recent_block_range, iter_block_batches


class CollateralFacetError(Exception):
    """CollateralFacet 调用错误 (RPC / 解码 / revert 不做区分)"""
    pass


class TransactionRevertedError(CollateralFacetError):
    """交易已上链但执行失败 (receipt.status != 1)"""
    def __init__(self, tx_hash: str, receipt: Any):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} reverted")


# 已知的 Aavegotchi Diamond 部署地址
DIAMOND_ADDRESSES = {
    "polygon_mainnet": "0x86935F11C86623deC8a25696E1C19a8659CbF95d",
}

_COLLATERAL_TYPE_IO = {
    "components": [
        {"name": "collateralType", "type": "address"},
        {
            "components": [
                {"name": "modifiers", "type": "int16[6]"},
                {"name": "primaryColor", "type": "bytes3"},
                {"name": "secondaryColor", "type": "bytes3"},
                {"name": "cheekColor", "type": "bytes3"},
                {"name": "svgId", "type": "uint8"},
                {"name": "eyeShapeSvgId", "type": "uint8"},
                {"name": "conversionRate", "type": "uint16"},
                {"name": "delisted", "type": "bool"}
            ],
            "name": "collateralTypeInfo",
            "type": "tuple"
        }
    ],
    "name": "collateralInfo_",
    "type": "tuple"
}

# CollateralFacet ABI
COLLATERAL_FACET_ABI = [
    # ---------- 读取 ----------
    {
        "inputs": [{"name": "_hauntId", "type": "uint256"}],
        "name": "collaterals",
        "outputs": [{"name": "collateralTypes_", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_hauntId", "type": "uint256"},
            {"name": "_collateralId", "type": "uint256"}
        ],
        "name": "collateralInfo",
        "outputs": [_COLLATERAL_TYPE_IO],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "_hauntId", "type": "uint256"}],
        "name": "getCollateralInfo",
        "outputs": [dict(_COLLATERAL_TYPE_IO, type="tuple[]")],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getAllCollateralTypes",
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "_tokenId", "type": "uint256"}],
        "name": "collateralBalance",
        "outputs": [
            {"name": "collateralType_", "type": "address"},
            {"name": "escrow_", "type": "address"},
            {"name": "balance_", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    # ---------- 写入 ----------
    {
        "inputs": [
            {"name": "_tokenId", "type": "uint256"},
            {"name": "_stakeAmount", "type": "uint256"}
        ],
        "name": "increaseStake",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_tokenId", "type": "uint256"},
            {"name": "_reduceAmount", "type": "uint256"}
        ],
        "name": "decreaseStake",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_tokenId", "type": "uint256"},
            {"name": "_toId", "type": "uint256"}
        ],
        "name": "decreaseAndDestroy",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_collateralToken", "type": "address"},
            {"name": "_svgId", "type": "uint8"}
        ],
        "name": "setCollateralEyeShapeSvgId",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    # ---------- 事件 ----------
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "_tokenId", "type": "uint256"},
            {"indexed": False, "name": "_stakeAmount", "type": "uint256"}
        ],
        "name": "IncreaseStake",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "_tokenId", "type": "uint256"},
            {"indexed": False, "name": "_reduceAmount", "type": "uint256"}
        ],
        "name": "DecreaseStake",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "_fromTokenId", "type": "uint256"},
            {"indexed": True, "name": "_toTokenId", "type": "uint256"},
            {"indexed": False, "name": "experience", "type": "uint256"}
        ],
        "name": "ExperienceTransfer",
        "type": "event"
    }
]

# 事件签名
EVENT_SIGNATURES = {
    "IncreaseStake": "IncreaseStake(uint256,uint256)",
    "DecreaseStake": "DecreaseStake(uint256,uint256)",
    "ExperienceTransfer": "ExperienceTransfer(uint256,uint256,uint256)",
}

DEFAULT_GAS_LIMIT = 500000


def _to_uint(value: Any, name: str, bits: int = 256) -> int:
    """校验无符号整数参数 (只做编码层面的检查)"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value >= 2 ** bits:
        raise ValueError(f"{name} out of range for uint{bits}: {value}")
    return value


def _uint_topic(value: int) -> str:
    """indexed uint256 -> 32 字节 topic"""
    return "0x" + format(value, "064x")


class CollateralFacet:
    """CollateralFacet 合约交互类"""

    def __init__(
        self,
        client: Web3Client,
        contract_address: Optional[str] = None,
        private_key: Optional[str] = None
    ):
        """
        初始化 CollateralFacet

        Args:
            client: Web3 客户端实例
            contract_address: Diamond 合约地址（不提供则从环境变量 / 已知部署读取）
            private_key: 私钥（用于写入操作，不提供则从环境变量读取）
        """
        load_dotenv()

        self.client = client

        if not contract_address:
            contract_address = (
                os.getenv("AAVEGOTCHI_DIAMOND_ADDRESS")
                or DIAMOND_ADDRESSES.get(client.network)
            )
            if not contract_address:
                raise ValueError("AAVEGOTCHI_DIAMOND_ADDRESS not found in .env")

        self.contract_address = client.to_checksum_address(contract_address)

        # 私钥可选，仅写入时需要
        self.private_key = private_key or os.getenv("PRIVATE_KEY")

        self.contract: Contract = client.w3.eth.contract(
            address=self.contract_address,
            abi=COLLATERAL_FACET_ABI
        )

    def _call(self, function_name: str, *args: Any) -> Any:
        """调用只读函数，所有远程错误统一包装为 CollateralFacetError"""
        try:
            return getattr(self.contract.functions, function_name)(*args).call()
        except Exception as e:
            raise CollateralFacetError(str(e)) from e

    # ============ 读取函数 ============

    def collaterals(self, haunt_id: int) -> List[str]:
        """
        查询某个 haunt 可用的全部抵押品地址

        Args:
            haunt_id: haunt 编号

        Returns:
            抵押品合约地址列表
        """
        haunt_id = _to_uint(haunt_id, "haunt_id")
        return list(self._call("collaterals", haunt_id))

    def collateral_info(self, haunt_id: int, collateral_id: int) -> CollateralType:
        """
        查询 haunt 中某个抵押品的详细信息

        Args:
            haunt_id: haunt 编号
            collateral_id: 抵押品编号

        Returns:
            CollateralType
        """
        haunt_id = _to_uint(haunt_id, "haunt_id")
        collateral_id = _to_uint(collateral_id, "collateral_id")
        result = self._call("collateralInfo", haunt_id, collateral_id)
        return CollateralType.from_tuple(result)

    def get_collateral_info(self, haunt_id: int) -> List[CollateralType]:
        """查询 haunt 中每个抵押品的详细信息"""
        haunt_id = _to_uint(haunt_id, "haunt_id")
        result = self._call("getCollateralInfo", haunt_id)
        return [CollateralType.from_tuple(c) for c in result]

    def get_all_collateral_types(self) -> List[str]:
        """查询所有 haunt 通用的抵押品地址"""
        return list(self._call("getAllCollateralTypes"))

    def collateral_balance(self, token_id: int) -> CollateralBalance:
        """
        查询 NFT 的抵押品地址、托管合约和余额
        仅对已认领的 aavegotchi 有效

        Args:
            token_id: NFT 编号

        Returns:
            CollateralBalance
        """
        token_id = _to_uint(token_id, "token_id")
        result = self._call("collateralBalance", token_id)
        return CollateralBalance(
            collateral_type=result[0],
            escrow=result[1],
            balance=result[2]
        )

    # ============ 写入函数 ============

    def increase_stake(
        self,
        token_id: int,
        stake_amount: int,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        timeout: int = 120
    ) -> TransactionResult:
        """
        增加已认领 aavegotchi 的抵押品质押（仅 owner）

        Args:
            token_id: NFT 编号
            stake_amount: 增加的抵押品数量（原始值）
            gas_limit: Gas 限制
            timeout: 等待确认的超时秒数

        Returns:
            交易结果
        """
        token_id = _to_uint(token_id, "token_id")
        stake_amount = _to_uint(stake_amount, "stake_amount")

        print(f"Increasing stake of {token_id} by {stake_amount}")
        return self._send_transaction(
            self.contract.functions.increaseStake(token_id, stake_amount),
            gas_limit,
            timeout
        )

    def decrease_stake(
        self,
        token_id: int,
        reduce_amount: int,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        timeout: int = 120
    ) -> TransactionResult:
        """
        减少已认领 aavegotchi 的抵押品质押（仅 owner，且未锁定）
        低于最小质押量时合约会 revert

        Args:
            token_id: NFT 编号
            reduce_amount: 减少的抵押品数量（原始值）
            gas_limit: Gas 限制
            timeout: 等待确认的超时秒数

        Returns:
            交易结果
        """
        token_id = _to_uint(token_id, "token_id")
        reduce_amount = _to_uint(reduce_amount, "reduce_amount")

        print(f"Reducing stake of {token_id} by {reduce_amount}")
        return self._send_transaction(
            self.contract.functions.decreaseStake(token_id, reduce_amount),
            gas_limit,
            timeout
        )

    def decrease_and_destroy(
        self,
        token_id: int,
        to_id: int,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        timeout: int = 120
    ) -> TransactionResult:
        """
        销毁 aavegotchi，并把它的 XP 转给另一只已认领的 aavegotchi
        被销毁 aavegotchi 的名字会被释放

        Args:
            token_id: 要销毁的 NFT 编号
            to_id: 接收 XP 的 NFT 编号
            gas_limit: Gas 限制
            timeout: 等待确认的超时秒数

        Returns:
            交易结果
        """
        token_id = _to_uint(token_id, "token_id")
        to_id = _to_uint(to_id, "to_id")

        print(f"Destroying gotchi: {token_id} and send its xp to gotchi: {to_id}...")
        return self._send_transaction(
            self.contract.functions.decreaseAndDestroy(token_id, to_id),
            gas_limit,
            timeout
        )

    def set_collateral_eye_shape_svg_id(
        self,
        collateral_token: str,
        svg_id: int,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        timeout: int = 120
    ) -> TransactionResult:
        """设置抵押品对应的眼睛形状 SVG（仅 DAO 或 owner）"""
        collateral_token = self.client.to_checksum_address(collateral_token)
        svg_id = _to_uint(svg_id, "svg_id", bits=8)

        print(f"Setting eye shape svg of collateral {collateral_token} to {svg_id}")
        return self._send_transaction(
            self.contract.functions.setCollateralEyeShapeSvgId(collateral_token, svg_id),
            gas_limit,
            timeout
        )

    def _send_transaction(self, contract_function: Any, gas_limit: int, timeout: int) -> TransactionResult:
        """构建、签名、发送交易并等待确认"""
        if not self.private_key:
            raise ValueError("Private key required for write operations")

        w3 = self.client.w3
        try:
            gas_price = self.client.get_gas_price()
            print("gas price in gwei", Web3.from_wei(gas_price, "gwei"))

            account = w3.eth.account.from_key(self.private_key)
            nonce = self.client.get_transaction_count(account.address)

            tx = contract_function.build_transaction({
                "from": account.address,
                "nonce": nonce,
                "gas": gas_limit,
                "gasPrice": gas_price,
                "chainId": self.client.get_chain_id()
            })

            signed_tx = w3.eth.account.sign_transaction(tx, self.private_key)
            tx_hash = w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except Exception as e:
            raise CollateralFacetError(str(e)) from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise TransactionRevertedError(tx_hash_hex, receipt)

        print("Transaction validated !\n")
        return TransactionResult(
            tx_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            gas_price=gas_price
        )

    # ============ 事件查询 ============

    def get_increase_stake_events(
        self,
        token_id: Optional[int] = None,
        from_block: Optional[int] = 0,
        to_block: Optional[int] = None,
        batch_size: int = 1000,
        hours_back: int = 24
    ) -> List[StakeEvent]:
        """
        获取 IncreaseStake 事件

        Args:
            token_id: 只看某个 NFT（None 表示全部）
            from_block: 起始区块（None 表示最近 hours_back 小时）
            to_block: 结束区块（None 表示最新区块）
            batch_size: 每批查询的区块数量
            hours_back: from_block 为 None 时的回溯小时数

        Returns:
            事件列表
        """
        return [
            StakeEvent(
                event="IncreaseStake",
                token_id=e["args"]["_tokenId"],
                amount=e["args"]["_stakeAmount"],
                block_number=e["blockNumber"],
                transaction_hash=Web3.to_hex(e["transactionHash"])
            )
            for e in self._get_events(
                "IncreaseStake", [("token_id", token_id)], from_block, to_block, batch_size, hours_back
            )
        ]

    def get_decrease_stake_events(
        self,
        token_id: Optional[int] = None,
        from_block: Optional[int] = 0,
        to_block: Optional[int] = None,
        batch_size: int = 1000,
        hours_back: int = 24
    ) -> List[StakeEvent]:
        """获取 DecreaseStake 事件，参数同 get_increase_stake_events"""
        return [
            StakeEvent(
                event="DecreaseStake",
                token_id=e["args"]["_tokenId"],
                amount=e["args"]["_reduceAmount"],
                block_number=e["blockNumber"],
                transaction_hash=Web3.to_hex(e["transactionHash"])
            )
            for e in self._get_events(
                "DecreaseStake", [("token_id", token_id)], from_block, to_block, batch_size, hours_back
            )
        ]

    def get_experience_transfer_events(
        self,
        from_token_id: Optional[int] = None,
        to_token_id: Optional[int] = None,
        from_block: Optional[int] = 0,
        to_block: Optional[int] = None,
        batch_size: int = 1000,
        hours_back: int = 24
    ) -> List[ExperienceTransferEvent]:
        """获取 ExperienceTransfer 事件（XP 从被销毁的 aavegotchi 转出）"""
        return [
            ExperienceTransferEvent(
                from_token_id=e["args"]["_fromTokenId"],
                to_token_id=e["args"]["_toTokenId"],
                experience=e["args"]["experience"],
                block_number=e["blockNumber"],
                transaction_hash=Web3.to_hex(e["transactionHash"])
            )
            for e in self._get_events(
                "ExperienceTransfer",
                [("from_token_id", from_token_id), ("to_token_id", to_token_id)],
                from_block,
                to_block,
                batch_size,
                hours_back
            )
        ]

    def _get_events(
        self,
        event_name: str,
        indexed_filters: List[Tuple[str, Optional[int]]],
        from_block: Optional[int],
        to_block: Optional[int],
        batch_size: int,
        hours_back: int
    ) -> List[Dict[str, Any]]:
        """分批拉取并解码事件日志"""
        topics: List[Optional[str]] = [
            Web3.to_hex(Web3.keccak(text=EVENT_SIGNATURES[event_name]))
        ]
        for name, value in indexed_filters:
            if value is not None:
                topics.append(_uint_topic(_to_uint(value, name)))
            else:
                topics.append(None)
        # 去掉末尾的通配 topic
        while topics[-1] is None:
            topics.pop()

        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        event = getattr(self.contract.events, event_name)()

        try:
            if from_block is None:
                from_block, latest = get_recent_block_range(self.client.w3, hours_back)
                if to_block is None:
                    to_block = latest
            elif to_block is None:
                to_block = self.client.get_block_number()

            events = []
            for batch_start, batch_end in iter_block_batches(from_block, to_block, batch_size):
                logs = self.client.w3.eth.get_logs({
                    "fromBlock": batch_start,
                    "toBlock": batch_end,
                    "address": self.contract_address,
                    "topics": topics
                })
                events.extend(event.process_log(log) for log in logs)
            return events
        except Exception as e:
            raise CollateralFacetError(str(e)) from e

    def __repr__(self) -> str:
        return f"CollateralFacet(address={self.contract_address})"


# 使用示例
if __name__ == "__main__":
    load_dotenv()

    client = Web3Client(network="polygon_mainnet")
    print(f"Connected: {client}")

    facet = CollateralFacet(client)
    print(f"Facet: {facet}")

    print("\n--- 全部抵押品 ---")
    for address in facet.get_all_collateral_types():
        print(address)

    print("\n--- Haunt 1 抵押品详情 ---")
    for c in facet.get_collateral_info(1):
        print(c.to_dict())
