"""
Driver payment endpoints
========================

GET  /api/v1/drivers/{telegram_id}/payment-status  -- today's fee, gate decision, instructions
POST /api/v1/drivers/{telegram_id}/payment-proofs  -- upload a receipt for today
"""

import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    GateResponse,
    PaymentProofResponse,
    PaymentStatusResponse,
)
from carpool.config import Settings, settings as app_settings
from carpool.services.accounts import AccountService
from carpool.services.monetization import MonetizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drivers", tags=["payments"])

ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".pdf", ".webp", ".heic"}


def store_receipt(receipts_dir: str, telegram_id: int, filename: str | None, data: bytes) -> str:
    """Write the upload under *receipts_dir*; returns the generated file name."""
    suffix = Path(filename or "").suffix.lower()
    if suffix not in ALLOWED_SUFFIXES:
        suffix = ".bin"
    stored_name = f"{telegram_id}_{uuid.uuid4().hex}{suffix}"
    target_dir = Path(receipts_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / stored_name).write_bytes(data)
    return stored_name


@router.get(
    "/{telegram_id}/payment-status",
    response_model=PaymentStatusResponse,
    summary="Today's platform fee and whether new trips are allowed",
)
@limiter.limit(app_settings.rate_limit)
async def payment_status(
    request: Request,
    telegram_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    status = await MonetizationService(db, settings).payment_status(telegram_id)
    return PaymentStatusResponse(
        gate=GateResponse.model_validate(status.decision),
        payment_details=status.payment_details,
    )


@router.post(
    "/{telegram_id}/payment-proofs",
    status_code=201,
    response_model=PaymentProofResponse,
    summary="Upload a payment receipt",
)
@limiter.limit(app_settings.rate_limit)
async def upload_payment_proof(
    request: Request,
    telegram_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    # unknown drivers never get a file on disk
    await AccountService(db, settings).get_profile(telegram_id)

    data = await file.read()
    stored_name = await run_in_threadpool(
        store_receipt, settings.receipts_dir, telegram_id, file.filename, data
    )
    logger.info("Stored receipt %s (%d bytes)", stored_name, len(data))
    try:
        return await MonetizationService(db, settings).record_payment_proof(
            telegram_id, file.filename, stored_name
        )
    except Exception:
        (Path(settings.receipts_dir) / stored_name).unlink(missing_ok=True)
        logger.warning("Discarded receipt %s, proof was not recorded", stored_name)
        raise
