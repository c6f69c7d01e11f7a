from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from pdfstore.database import get_session
from pdfstore.models.user import User
from pdfstore.schemas.payment_schemas import DownloadLinkResponse
from pdfstore.services.download_service import (
    DownloadRefused,
    authorize_download,
    sign_download,
)
from pdfstore.utils.token import get_current_user, get_optional_user

router = APIRouter()


@router.get("/download")
def download(
    order_id: str,
    session: Session = Depends(get_session),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Redirects to a short-lived signed URL; the bucket key never leaves the server."""
    try:
        order = authorize_download(session, order_id, current_user)
        signed = sign_download(session, order)
    except DownloadRefused as e:
        raise HTTPException(e.status_code, e.detail)

    return RedirectResponse(signed.url, status_code=307)


@router.get("/download-link", response_model=DownloadLinkResponse)
def download_link(
    order_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        order = authorize_download(session, order_id, current_user)
        signed = sign_download(session, order)
    except DownloadRefused as e:
        raise HTTPException(e.status_code, e.detail)

    return DownloadLinkResponse(url=signed.url, expires_in=signed.expires_in)
