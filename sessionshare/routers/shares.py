# sessionshare/routers/shares.py
# FastAPI router for the share API

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from sessionshare.schemas.share import (
    CreateShareRequest,
    CreateShareResponse,
    RemoveShareRequest,
    ShareDataResponse,
    ShareInfoResponse,
    StatusResponse,
    SyncShareRequest,
    SyncShareResponse,
)
from sessionshare.errors import NotFoundError
from sessionshare.services.share_service import ShareService
from sessionshare.utils.logger import log_info


router = APIRouter(tags=["Shares"])


def get_share_service(request: Request) -> ShareService:
    """The single ShareService built in the app lifespan."""
    return request.app.state.share_service


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _share_url(request: Request, share_id: str) -> str:
    base = request.app.state.settings.PUBLIC_BASE_URL
    if not base:
        proto = (
            request.headers.get("x-forwarded-proto")
            or request.headers.get("x-forwarded-protocol")
            or "https"
        )
        host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost:3006"
        base = f"{proto}://{host}"
    return f"{base.rstrip('/')}/share/{share_id}"


@router.post("/share", response_model=CreateShareResponse, status_code=status.HTTP_201_CREATED)
async def create_share(
    payload: CreateShareRequest,
    request: Request,
    service: ShareService = Depends(get_share_service),
) -> CreateShareResponse:
    """Create a share for a session and return its id, secret and link."""
    share = await service.create(payload.session_id)
    url = _share_url(request, share.id)
    log_info(f"create_share: id={share.id} url={url} ip={_client_ip(request)}")
    return CreateShareResponse(id=share.id, secret=share.secret, url=url)


@router.get("/share/{share_id}", response_model=ShareInfoResponse)
async def get_share(
    share_id: str,
    service: ShareService = Depends(get_share_service),
) -> ShareInfoResponse:
    share = await service.get(share_id)
    if share is None:
        raise NotFoundError(f"Share not found: {share_id}", details={"id": share_id})
    return ShareInfoResponse(**share.public_info())


@router.post("/share/{share_id}/sync", response_model=SyncShareResponse)
async def sync_share(
    share_id: str,
    payload: SyncShareRequest,
    request: Request,
    service: ShareService = Depends(get_share_service),
) -> SyncShareResponse:
    sequence = await service.sync(share_id, payload.secret, payload.data)
    log_info(f"sync_share: id={share_id} items={len(payload.data)} ip={_client_ip(request)}")
    return SyncShareResponse(sequence=sequence)


@router.get("/share/{share_id}/data", response_model=ShareDataResponse)
async def get_share_data(
    share_id: str,
    service: ShareService = Depends(get_share_service),
) -> ShareDataResponse:
    """Merged share data. Readable by anyone holding the link."""
    return ShareDataResponse(data=await service.get_data(share_id))


@router.delete("/share/{share_id}", response_model=StatusResponse)
async def remove_share(
    share_id: str,
    payload: RemoveShareRequest,
    request: Request,
    service: ShareService = Depends(get_share_service),
) -> StatusResponse:
    await service.remove(share_id, payload.secret)
    log_info(f"remove_share: id={share_id} ip={_client_ip(request)}")
    return StatusResponse(success=True, message=f"Share {share_id} removed")
