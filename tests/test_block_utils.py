"""
区块工具函数测试
"""

import pytest
from unittest.mock import Mock

from gotchi_collateral.utils.block_utils import (
    DEFAULT_BLOCKS_PER_HOUR,
    estimate_blocks_per_hour,
    get_recent_block_range,
    iter_block_batches,
)


@pytest.fixture
def mock_w3():
    """每 2 秒一个块的模拟链"""
    w3 = Mock()
    w3.eth.block_number = 10000
    w3.eth.get_block.side_effect = lambda n: {"timestamp": n * 2}
    return w3


def test_iter_block_batches():
    assert list(iter_block_batches(0, 2500, 1000)) == [
        (0, 999),
        (1000, 1999),
        (2000, 2500),
    ]


def test_iter_block_batches_single_block():
    assert list(iter_block_batches(5, 5, 1000)) == [(5, 5)]


def test_iter_block_batches_empty_range():
    assert list(iter_block_batches(10, 5, 1000)) == []


def test_iter_block_batches_bad_size():
    with pytest.raises(ValueError):
        list(iter_block_batches(0, 10, 0))


def test_estimate_blocks_per_hour(mock_w3):
    assert estimate_blocks_per_hour(mock_w3) == pytest.approx(1800)


def test_estimate_blocks_per_hour_fallback():
    """取块失败时返回默认值"""
    w3 = Mock()
    w3.eth.block_number = 10000
    w3.eth.get_block.side_effect = Exception("rpc down")

    assert estimate_blocks_per_hour(w3) == DEFAULT_BLOCKS_PER_HOUR


def test_estimate_blocks_per_hour_same_timestamp():
    w3 = Mock()
    w3.eth.block_number = 10000
    w3.eth.get_block.return_value = {"timestamp": 1700000000}

    assert estimate_blocks_per_hour(w3) == DEFAULT_BLOCKS_PER_HOUR


def test_get_recent_block_range(mock_w3):
    assert get_recent_block_range(mock_w3, hours_back=1) == (8200, 10000)


def test_get_recent_block_range_clamps_to_genesis(mock_w3):
    assert get_recent_block_range(mock_w3, hours_back=24) == (0, 10000)


def test_estimate_blocks_per_hour_short_chain():
    """链上区块不足采样数时，按实际区块跨度计算"""
    w3 = Mock()
    w3.eth.block_number = 10
    w3.eth.get_block.side_effect = lambda n: {"timestamp": n * 2}

    assert estimate_blocks_per_hour(w3) == pytest.approx(1800)
    w3.eth.get_block.assert_any_call(0)
