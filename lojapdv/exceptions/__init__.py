"""Custom exceptions for the POS application."""
from decimal import Decimal


def _fmt_qty(value) -> str:
    """Quantity for messages: integers without decimals, up to 3 places otherwise."""
    value = Decimal(str(value))
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.3f}".rstrip('0').rstrip('.').replace('.', ',')


class PdvError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocorreu um erro interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(PdvError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(PdvError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Registro não encontrado", payload=None):
        super().__init__(message, 404, payload)

class AuthenticationError(PdvError):
    """Raised when credentials are wrong or the account cannot log in."""
    def __init__(self, message="Faça login para continuar."):
        super().__init__(message, 401)

class UnauthorizedError(PdvError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Acesso não autorizado"):
        super().__init__(message, 403)


class LineError:
    """Validation problem attached to one cart/bulk line."""

    ITEM_NOT_FOUND = 'item_not_found'
    INSUFFICIENT_STOCK = 'insufficient_stock'
    INVALID_DATE = 'invalid_date'
    LEDGER_ERROR = 'ledger_error'

    def __init__(self, line_key, code, message):
        self.line_key = line_key
        self.code = code
        self.message = message

    def to_dict(self):
        return {'line': self.line_key, 'code': self.code, 'message': self.message}

    def __repr__(self):
        return f"<LineError(line={self.line_key!r}, code='{self.code}')>"


class CartValidationError(BusinessLogicError):
    """Local validation failed; nothing was submitted."""
    def __init__(self, message, line_errors=None):
        self.line_errors = list(line_errors or [])
        payload = {'line_errors': [e.to_dict() for e in self.line_errors]}
        super().__init__(message, status_code=422, payload=payload)


class SaleLedgerError(PdvError):
    """The sale ledger rejected a create/reverse call."""
    def __init__(self, message, status_code=502, payload=None):
        super().__init__(message, status_code, payload)

class InsufficientStockError(SaleLedgerError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = required
        self.available = available
        message = (
            f"Estoque insuficiente em: {product_name} "
            f"(solicitado {_fmt_qty(required)}, disponível {_fmt_qty(available)})"
        )
        super().__init__(message, status_code=409)


class BulkEntryInterrupted(PdvError):
    """A bulk entry stopped at a ledger failure; earlier rows stay saved."""
    def __init__(self, saved, line_error, status_code=409):
        self.saved = saved
        self.line_error = line_error
        payload = {'saved': saved, 'line_errors': [line_error.to_dict()]}
        super().__init__(
            'Uma linha falhou. Veja o erro marcado e tente salvar de novo.',
            status_code,
            payload
        )
