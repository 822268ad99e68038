# errors.py
"""
Error kinds raised by the services. Each one is an HTTPException so the
routes can let them propagate and FastAPI renders them as {"detail": ...}.
"""
from fastapi import HTTPException, status


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid input."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class DuplicateEmail(ValidationError):
    def __init__(self):
        super().__init__("Email already registered.")


class InvalidCredentials(ValidationError):
    # Same message for an unknown email and a wrong password.
    def __init__(self):
        super().__init__("Invalid email or password.")


class InvalidStatus(ValidationError):
    def __init__(self):
        super().__init__("Invalid status. Can only set to BUSY or SWAPPABLE.")


class AuthError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundOrForbidden(HTTPException):
    """Raised both when a record is missing and when the caller does not own it."""

    def __init__(self, detail: str = "Not found or you are not the owner."):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Slot is not in a state that allows this change."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InvalidOffer(ConflictError):
    def __init__(self):
        super().__init__("Your slot is not valid or not swappable.")


class InvalidTarget(ConflictError):
    def __init__(self):
        super().__init__("Their slot is not valid or not swappable.")


class StorageError(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")
