# -*- coding: utf-8 -*-
"""
区块工具函数
为事件查询计算合适的区块范围
"""

from typing import Tuple
from web3 import Web3

# Polygon 约 2 秒一个块
DEFAULT_BLOCKS_PER_HOUR = 1800


def estimate_blocks_per_hour(w3: Web3, sample_blocks: int = 100) -> float:
    """
    估算每小时的区块数量

    Args:
        w3: Web3 实例
        sample_blocks: 采样区块数

    Returns:
        每小时区块数
    """
    latest = w3.eth.block_number

    try:
        earlier = max(0, latest - sample_blocks)
        latest_block = w3.eth.get_block(latest)
        earlier_block = w3.eth.get_block(earlier)

        time_diff = latest_block["timestamp"] - earlier_block["timestamp"]
        if time_diff <= 0:
            return DEFAULT_BLOCKS_PER_HOUR

        blocks_per_hour = (latest - earlier) / time_diff * 3600

        print(f"  Estimated blocks per hour: {blocks_per_hour:.0f}")
        return blocks_per_hour
    except Exception as e:
        print(f"  [!] Error estimating block rate: {e}")
        return DEFAULT_BLOCKS_PER_HOUR


def get_recent_block_range(w3: Web3, hours_back: int = 24) -> Tuple[int, int]:
    """
    获取最近 N 小时的区块范围

    Args:
        w3: Web3 实例
        hours_back: 回溯小时数

    Returns:
        (from_block, to_block)
    """
    latest_block = w3.eth.block_number
    blocks_back = int(estimate_blocks_per_hour(w3) * hours_back)
    return max(0, latest_block - blocks_back), latest_block


def iter_block_batches(from_block: int, to_block: int, batch_size: int = 1000):
    """按 batch_size 切分 [from_block, to_block]，避免 RPC 的 get_logs 范围限制"""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    current_block = from_block
    while current_block <= to_block:
        batch_end = min(current_block + batch_size - 1, to_block)
        yield current_block, batch_end
        current_block = batch_end + 1
