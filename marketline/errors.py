class DomainError(Exception):
    """Base class for domain/service errors."""


class NotFoundError(DomainError):
    def __init__(self, detail="Not found"):
        super().__init__(detail)
        self.detail = detail


class UnauthorizedError(DomainError):
    pass


class ForbiddenError(DomainError):
    def __init__(self, detail="Forbidden"):
        super().__init__(detail)
        self.detail = detail


class ConflictError(DomainError):
    def __init__(self, detail):
        super().__init__("Conflict")
        self.detail = detail


class ValidationError(DomainError):
    def __init__(self, detail):
        super().__init__("Validation error")
        self.detail = detail


class OutOfStockError(DomainError):
    """No requested line could be allocated; nothing was written."""

    def __init__(self, shortages):
        super().__init__("All products are out of stock.")
        self.shortages = shortages


class InternalError(DomainError):
    """A collaborator failed after earlier writes may already be durable."""

    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail
