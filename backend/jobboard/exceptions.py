import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from jobs.errors import (
    BidNotFound,
    DriverNotEligible,
    DriverNotFound,
    DuplicateBid,
    InternalConsistencyError,
    InvalidAmount,
    InvalidTransition,
    JobNotBiddable,
    JobNotFound,
    LockTimeout,
    MarketplaceError,
    NotAssignedDriver,
    NotBidOwner,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InvalidAmount: status.HTTP_400_BAD_REQUEST,
    JobNotBiddable: status.HTTP_400_BAD_REQUEST,
    DriverNotEligible: status.HTTP_400_BAD_REQUEST,
    NotBidOwner: status.HTTP_403_FORBIDDEN,
    NotAssignedDriver: status.HTTP_403_FORBIDDEN,
    JobNotFound: status.HTTP_404_NOT_FOUND,
    BidNotFound: status.HTTP_404_NOT_FOUND,
    DriverNotFound: status.HTTP_404_NOT_FOUND,
    DuplicateBid: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    LockTimeout: status.HTTP_503_SERVICE_UNAVAILABLE,
    InternalConsistencyError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def marketplace_exception_handler(exc, context):
    """
    Maps marketplace errors onto HTTP statuses, everything else goes through DRF's handler.
    """
    if isinstance(exc, MarketplaceError):
        code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
        if code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, context["request"].path, exc)
        return Response({"error": str(exc), "code": type(exc).__name__}, status=code)

    # bad dates / times / numbers rejected by the domain constructors
    if isinstance(exc, ValueError):
        return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    return exception_handler(exc, context)
