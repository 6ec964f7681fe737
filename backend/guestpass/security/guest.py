"""
客人侧凭证提取
二维码中的访问凭证通过 X-Guest-Token 请求头提交，缺失与无效统一返回 401
"""
from typing import Optional
from fastapi import Header, HTTPException, status
from guestpass.services.errors import Unauthorized

GUEST_TOKEN_HEADER = "X-Guest-Token"


def get_guest_token(x_guest_token: Optional[str] = Header(None, alias=GUEST_TOKEN_HEADER)) -> str:
    """读取客人访问凭证（只取原文，校验交给网关服务）"""
    if not x_guest_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(Unauthorized())
        )
    return x_guest_token
