from fastapi import status


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing/invalid field or a uniqueness violation"""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """Unknown record id"""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """Operation refused because other records depend on the target"""
    status_code = status.HTTP_409_CONFLICT


class StoreError(ServiceError):
    """The store is unreachable or a query failed"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
