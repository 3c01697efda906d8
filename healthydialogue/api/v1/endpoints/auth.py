import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy.orm import Session

from healthydialogue import crud, schemas
from healthydialogue.api import deps
from healthydialogue.core import security
from healthydialogue.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login-link", response_model=schemas.LoginLink)
def create_login_link(
    *,
    db: Session = Depends(deps.get_db),
    body: schemas.LoginLinkRequest,
) -> Any:
    """
    Issue a login link for a doctor identified by messaging-channel uuid or phone.
    """
    identifier = body.identifier.strip()
    if not identifier:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Identifier (TextIt UUID or Phone) is required",
        )

    doctor = crud.doctor.get_by_identifier(db, identifier)
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")

    token = security.create_access_token(doctor.id)
    logger.info(f"Issued login link for doctor {doctor.id}")
    return schemas.LoginLink(url=f"{settings.FRONTEND_URL}/auth/callback?token={token}", token=token)


@router.get("/validate", response_model=schemas.TokenValidation)
def validate_token(
    db: Session = Depends(deps.get_db),
    token: Optional[str] = Query(None),
) -> Any:
    if not token:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=schemas.TokenValidation(valid=False, error="Token is required").model_dump(),
        )

    try:
        token_data = schemas.TokenPayload(**security.decode_access_token(token))
    except (JWTError, ValueError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=schemas.TokenValidation(valid=False, error="Invalid or expired token").model_dump(),
        )

    doctor = crud.doctor.get(db, id=token_data.sub) if token_data.sub is not None else None
    if not doctor:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=schemas.TokenValidation(valid=False, error="Doctor not found").model_dump(),
        )

    return schemas.TokenValidation(valid=True, doctor=schemas.DoctorInfo.model_validate(doctor))
