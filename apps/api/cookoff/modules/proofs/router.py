from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from cookoff.core.clock import Clock, get_clock
from cookoff.core.request_ctx import client_ip, request_id_of
from cookoff.modules.accounts.auth import Principal, get_principal

from .gate import MAX_PROOF_BYTES
from .schemas import UploadOut
from .service import upload_proof

router = APIRouter(prefix="/proofs", tags=["proofs"])


@router.post("/upload", response_model=UploadOut, status_code=201)
def api_upload_proof(
    request: Request,
    video: Optional[UploadFile] = File(None),
    battle_id: Optional[str] = Form(None, alias="battleId"),
    recipe_id: Optional[str] = Form(None, alias="recipeId"),
    notes: Optional[str] = Form(None),
    duration_seconds: Optional[float] = Form(None, alias="durationSeconds"),
    principal: Principal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
):
    data = None
    filename = None
    mime_type = None
    if video is not None:
        # one byte past the limit is enough to reject oversize files
        data = video.file.read(MAX_PROOF_BYTES + 1)
        filename = video.filename
        mime_type = video.content_type

    return upload_proof(
        principal,
        battle_id=battle_id,
        recipe_id=recipe_id,
        notes=notes,
        filename=filename,
        mime_type=mime_type,
        data=data,
        duration_seconds=duration_seconds,
        upload_ip=client_ip(request),
        now=clock.now(),
        request_id=request_id_of(request),
    )
