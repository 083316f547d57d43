class ValidationError(ValueError):
    """Raised when a request is rejected before touching the store."""


class StoreError(RuntimeError):
    """Raised when the configured store cannot perform a required operation.

    Driver and connection failures are not wrapped; they surface as the
    original ``sqlalchemy.exc.SQLAlchemyError``.
    """
