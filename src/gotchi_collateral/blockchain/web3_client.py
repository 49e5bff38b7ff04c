"""
Web3 客户端封装
负责连接 Aavegotchi 所在网络 (Polygon / Base)，提供 gas 价格、区块高度等基础查询
"""

import os
from typing import Optional
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from dotenv import load_dotenv


# 网络名称 -> RPC 环境变量
NETWORK_RPC_ENV = {
    "polygon_mainnet": "POLYGON_MAINNET_RPC_URL",
    "polygon_amoy": "POLYGON_AMOY_RPC_URL",
    "base_mainnet": "BASE_MAINNET_RPC_URL",
    "base_sepolia": "BASE_SEPOLIA_RPC_URL",
}

# Polygon 系列是 PoA 链，区块 extraData 超长，需要额外中间件
POA_NETWORKS = {"polygon_mainnet", "polygon_amoy"}


class Web3Client:
    """Web3 客户端封装类"""

    def __init__(self, rpc_url: Optional[str] = None, network: str = "polygon_mainnet"):
        """
        初始化 Web3 客户端

        Args:
            rpc_url: RPC URL，如果不提供则从环境变量读取
            network: 网络名称 (polygon_mainnet, polygon_amoy, base_mainnet, base_sepolia)
        """
        load_dotenv()

        if network not in NETWORK_RPC_ENV:
            raise ValueError(f"Unknown network: {network}")

        # 如果没有提供 RPC URL，从环境变量读取
        if not rpc_url:
            rpc_url = os.getenv(NETWORK_RPC_ENV[network])
            if not rpc_url:
                raise ValueError(f"RPC URL not found in .env for {network}")

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        if network in POA_NETWORKS:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        self.network = network
        self.rpc_url = rpc_url

        if not self.is_connected():
            raise ConnectionError(f"Failed to connect to {rpc_url}")

    def is_connected(self) -> bool:
        """检查是否已连接到区块链"""
        try:
            return self.w3.is_connected()
        except Exception:
            return False

    def get_block_number(self) -> int:
        """获取当前区块高度"""
        return self.w3.eth.block_number

    def get_chain_id(self) -> int:
        """获取链 ID"""
        return self.w3.eth.chain_id

    def get_gas_price(self) -> int:
        """获取当前 gas 价格（单位：wei）"""
        return self.w3.eth.gas_price

    def get_transaction_count(self, address: str) -> int:
        """
        获取地址的交易计数（nonce）

        Args:
            address: 钱包地址

        Returns:
            交易计数
        """
        checksum_address = Web3.to_checksum_address(address)
        return self.w3.eth.get_transaction_count(checksum_address)

    def to_checksum_address(self, address: str) -> str:
        """
        将地址转换为 checksum 格式

        Args:
            address: 地址

        Returns:
            Checksum 地址
        """
        return Web3.to_checksum_address(address)

    def __repr__(self) -> str:
        """返回客户端信息"""
        status = "connected" if self.is_connected() else "disconnected"
        return f"Web3Client(network={self.network}, status={status})"


# 使用示例
if __name__ == "__main__":
    client = Web3Client(network="polygon_mainnet")

    print(f"Client: {client}")
    print(f"Chain ID: {client.get_chain_id()}")
    print(f"Block Number: {client.get_block_number()}")
    print(f"Gas Price (gwei): {Web3.from_wei(client.get_gas_price(), 'gwei')}")
