# driver_onboarding/routers/errors.py
from fastapi import HTTPException, status

from ..services.exceptions import (
    OnboardingValidationError,
    PlateConflictError,
    TransactionConflictError,
)

# domain errors the routers translate; everything else propagates
DOMAIN_ERRORS = (OnboardingValidationError, PlateConflictError, TransactionConflictError, LookupError)


def http_error(e: Exception) -> HTTPException:
    if isinstance(e, (PlateConflictError, TransactionConflictError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e).strip("'\""))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
