# -*- coding: utf-8 -*-
"""
抵押品查询 API
只读接口，供前端查询 Aavegotchi 抵押品信息（写入需要私钥，不对外暴露）
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import List, Optional
import os

from dotenv import load_dotenv
load_dotenv()

from ..blockchain.web3_client import Web3Client
from ..blockchain.collateral_facet import (
    COLLATERAL_FACET_ABI,
    CollateralFacet,
    CollateralFacetError,
)

NETWORK = os.getenv("NETWORK", "polygon_mainnet")

app = FastAPI(
    title="Gotchi Collateral API",
    description="Aavegotchi CollateralFacet 只读查询 API",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 全局实例
client: Optional[Web3Client] = None
facet: Optional[CollateralFacet] = None


def get_client() -> Optional[Web3Client]:
    """获取 Web3 客户端（懒加载，可能失败）"""
    global client
    if client is None:
        try:
            client = Web3Client(network=NETWORK)
        except (ValueError, ConnectionError) as e:
            print(f"[!] Web3 client init failed: {e}")
            return None
    return client


def get_facet() -> CollateralFacet:
    """获取合约实例（懒加载）"""
    global facet
    if facet is None:
        c = get_client()
        if c is None:
            raise CollateralFacetError(f"No RPC connection for {NETWORK}")
        facet = CollateralFacet(c)
    return facet


# ============ 响应模型 ============

class CollateralTypeInfoResponse(BaseModel):
    modifiers: List[int]
    primary_color: str
    secondary_color: str
    cheek_color: str
    svg_id: int
    eye_shape_svg_id: int
    conversion_rate: int
    delisted: bool


class CollateralTypeResponse(BaseModel):
    collateral_type: str
    collateral_type_info: CollateralTypeInfoResponse


class CollateralBalanceResponse(BaseModel):
    collateral_type: str
    escrow: str
    balance: str  # uint256 超出 JS Number 范围，按字符串返回


# ============ 错误处理 ============

@app.exception_handler(CollateralFacetError)
async def facet_error_handler(request: Request, exc: CollateralFacetError):
    """链上调用失败 -> 502"""
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """参数 / 配置错误 -> 400"""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ============ API 路由 ============

@app.get("/")
async def root():
    """健康检查"""
    return {
        "status": "ok",
        "service": "Gotchi Collateral API",
        "version": "0.1.0"
    }


@app.get("/api/status")
async def get_status():
    """获取系统状态"""
    c = get_client()
    if c is None:
        return {
            "connected": False,
            "network": NETWORK,
            "chain_id": None,
            "block_number": None,
            "contract_address": None,
        }

    try:
        chain_id = c.get_chain_id()
        block_number = c.get_block_number()
    except Exception as e:
        raise CollateralFacetError(str(e)) from e

    return {
        "connected": c.is_connected(),
        "network": NETWORK,
        "chain_id": chain_id,
        "block_number": block_number,
        "contract_address": get_facet().contract_address,
    }


@app.get("/api/haunts/{haunt_id}/collaterals", response_model=List[str])
async def get_haunt_collaterals(haunt_id: int):
    """某个 haunt 可用的抵押品地址"""
    return get_facet().collaterals(haunt_id)


@app.get(
    "/api/haunts/{haunt_id}/collaterals/{collateral_id}",
    response_model=CollateralTypeResponse
)
async def get_haunt_collateral(haunt_id: int, collateral_id: int):
    """haunt 中某个抵押品的详情"""
    return get_facet().collateral_info(haunt_id, collateral_id).to_dict()


@app.get(
    "/api/haunts/{haunt_id}/collateral-info",
    response_model=List[CollateralTypeResponse]
)
async def get_haunt_collateral_info(haunt_id: int):
    """haunt 中全部抵押品的详情"""
    return [c.to_dict() for c in get_facet().get_collateral_info(haunt_id)]


@app.get("/api/collaterals", response_model=List[str])
async def get_all_collaterals():
    """全部 haunt 通用的抵押品地址"""
    return get_facet().get_all_collateral_types()


@app.get(
    "/api/gotchis/{token_id}/collateral-balance",
    response_model=CollateralBalanceResponse
)
async def get_collateral_balance(token_id: int):
    """Aavegotchi 的抵押品、托管合约和余额"""
    balance = get_facet().collateral_balance(token_id)
    return CollateralBalanceResponse(
        collateral_type=balance.collateral_type,
        escrow=balance.escrow,
        balance=str(balance.balance)
    )


@app.get("/api/contract-info")
async def get_contract_info():
    """获取合约信息（供前端连接使用）"""
    f = get_facet()
    try:
        chain_id = f.client.get_chain_id()
    except Exception as e:
        raise CollateralFacetError(str(e)) from e

    return {
        "address": f.contract_address,
        "abi": COLLATERAL_FACET_ABI,
        "chain_id": chain_id,
        "network": NETWORK
    }


# ============ 启动入口 ============

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
