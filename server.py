"""FastAPI surface for the return claims reasoner."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from return_reasoner.claims import ClaimService
from return_reasoner.models.claim import ClaimSubmission
from return_reasoner.reasoner import get_config, get_database, run_reasoner
from return_reasoner.review import ManualReviewService
from return_reasoner.utils.auth import BearerTokenVerifier, CurrentUser
from return_reasoner.utils.errors import (
    GENERIC_PUBLIC_MESSAGE,
    PUBLIC_MESSAGES,
    AuthenticationError,
    ErrorType,
    ReturnProcessingError,
)
from return_reasoner.utils.logging import log_context
from return_reasoner.utils.response_formatter import ResponseFormatter

logger = logging.getLogger(__name__)

APP_TITLE = "Return Claims Reasoner"

STATUS_BY_ERROR_TYPE = {
    ErrorType.AUTHENTICATION_REQUIRED: 401,
    ErrorType.AUTHENTICATION_INVALID: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.INVALID_REQUEST: 400,
    ErrorType.INVALID_TRANSITION: 400,
    ErrorType.CLAIM_NOT_FOUND: 404,
}


class AnalyzeReturnRequest(BaseModel):
    claimId: Optional[str] = None
    imageReference: Optional[str] = None
    description: Optional[str] = None
    language: str = "en"


class CreateReturnRequest(BaseModel):
    customerName: str
    customerEmail: str
    productName: str
    issueDescription: str
    orderId: Optional[str] = None
    productCategory: Optional[str] = None
    issueCategory: Optional[str] = None
    imageReference: Optional[str] = None
    language: str = "en"


class ResubmitEvidenceRequest(BaseModel):
    imageReference: Optional[str] = None
    description: Optional[str] = None


class ReviewDecisionRequest(BaseModel):
    action: str
    adminNotes: Optional[str] = None


app = FastAPI(title=APP_TITLE)

# Bearer token scheme; a missing or non-Bearer header yields None
security = HTTPBearer(auto_error=False)


def _error_id(request: Request) -> str:
    error_id = getattr(request.state, "error_id", None)
    if not error_id:
        error_id = str(uuid.uuid4())
        request.state.error_id = error_id
    return error_id


def _error_response(status_code: int, message: str, error_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ResponseFormatter.error_payload(message, error_id),
    )


@app.middleware("http")
async def assign_correlation_id(request: Request, call_next):
    """Give every request an id that is logged and returned on failure."""
    error_id = str(uuid.uuid4())
    request.state.error_id = error_id
    try:
        with log_context(correlation_id=error_id):
            response = await call_next(request)
    except Exception as e:
        logger.error(f"Unhandled error [{error_id}] on {request.method} {request.url.path}: {e}", exc_info=True)
        response = _error_response(500, GENERIC_PUBLIC_MESSAGE, error_id)
    response.headers["X-Correlation-Id"] = error_id
    return response


@app.exception_handler(ReturnProcessingError)
async def handle_processing_error(request: Request, exc: ReturnProcessingError) -> JSONResponse:
    error_id = _error_id(request)
    status_code = STATUS_BY_ERROR_TYPE.get(exc.error_type, 500)
    log = logger.warning if status_code < 500 else logger.error
    log(f"Request failed [{error_id}] with {status_code}: {exc}", extra={"error": exc.to_dict()})
    return _error_response(status_code, exc.public_message, error_id)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error_id = _error_id(request)
    logger.warning(f"Invalid request body [{error_id}]: {exc.errors()}")
    return _error_response(400, PUBLIC_MESSAGES[ErrorType.INVALID_REQUEST], error_id)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_id = _error_id(request)
    logger.warning(f"HTTP {exc.status_code} [{error_id}] on {request.url.path}: {exc.detail}")
    return _error_response(exc.status_code, str(exc.detail), error_id)


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Verify the bearer token before any handler logic runs."""
    if credentials is None:
        logger.warning("No bearer credentials provided")
        raise AuthenticationError.missing()

    auth = get_config().auth
    verifier = BearerTokenVerifier(
        secret=auth.jwt_secret,
        algorithms=auth.algorithms,
        issuer=auth.issuer,
        audience=auth.audience,
    )
    return verifier.verify_token(credentials.credentials)


def require_admin(user: CurrentUser = Depends(require_user)) -> CurrentUser:
    admin_role = get_config().auth.admin_role
    if not user.has_role(admin_role):
        raise AuthenticationError.forbidden(user.id, admin_role)
    return user


def _ensure_can_access(user: CurrentUser, claim_owner: Optional[str]) -> None:
    admin_role = get_config().auth.admin_role
    if claim_owner != user.id and not user.has_role(admin_role):
        raise AuthenticationError.forbidden(user.id, "owner")


@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/returns/analyze")
def analyze_return(
    body: AnalyzeReturnRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
) -> Dict[str, Any]:
    """Run the analysis pipeline on an existing claim."""
    if body.claimId:
        claim = ClaimService(get_database()).get_claim(body.claimId)
        _ensure_can_access(user, claim.user_id)

    return run_reasoner(
        claim_id=body.claimId,
        image_reference=body.imageReference,
        description=body.description,
        language=body.language,
        correlation_id=_error_id(request),
    )


@app.post("/api/returns", status_code=201)
def create_return(
    body: CreateReturnRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
) -> Dict[str, Any]:
    """Create a claim for the current user and analyse it."""
    service = ClaimService(get_database())
    claim_id = service.submit_claim(user.id, ClaimSubmission(
        customer_name=body.customerName,
        customer_email=body.customerEmail,
        product_name=body.productName,
        issue_description=body.issueDescription,
        order_id=body.orderId,
        product_category=body.productCategory,
        issue_category=body.issueCategory,
        image_reference=body.imageReference,
        language=body.language,
    ))

    with log_context(claim_id=claim_id):
        result = run_reasoner(
            claim_id=claim_id,
            image_reference=body.imageReference,
            description=body.issueDescription,
            language=body.language,
            correlation_id=_error_id(request),
        )

    return {"claim": service.get_claim(claim_id).to_dict(), "analysis": result}


@app.get("/api/returns/{claim_id}")
def get_return(claim_id: str, user: CurrentUser = Depends(require_user)) -> Dict[str, Any]:
    claim = ClaimService(get_database()).get_claim(claim_id)
    _ensure_can_access(user, claim.user_id)
    return claim.to_dict()


@app.post("/api/returns/{claim_id}/resubmit")
def resubmit_return(
    claim_id: str,
    body: ResubmitEvidenceRequest,
    request: Request,
    user: CurrentUser = Depends(require_user),
) -> Dict[str, Any]:
    """Attach a new photo to a claim awaiting more information and re-run the analysis."""
    service = ClaimService(get_database())
    _ensure_can_access(user, service.get_claim(claim_id).user_id)

    claim = service.resubmit_evidence(claim_id, body.imageReference, body.description)
    result = run_reasoner(
        claim_id=claim.id,
        image_reference=claim.image_reference,
        description=claim.issue_description,
        language=claim.language,
        correlation_id=_error_id(request),
    )
    return {"claim": service.get_claim(claim_id).to_dict(), "analysis": result}


@app.get("/api/reviews")
def list_reviews(user: CurrentUser = Depends(require_admin)) -> Dict[str, Any]:
    items = ManualReviewService(get_database()).pending_reviews()
    return {"reviews": [item.to_dict() for item in items], "count": len(items)}


@app.post("/api/reviews/{claim_id}")
def submit_review(
    claim_id: str,
    body: ReviewDecisionRequest,
    user: CurrentUser = Depends(require_admin),
) -> Dict[str, Any]:
    claim = ManualReviewService(get_database()).apply(claim_id, body.action, body.adminNotes)
    logger.info(f"Reviewer {user.id} applied {body.action} to claim {claim_id}")
    return claim.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host="0.0.0.0", port=8000)
