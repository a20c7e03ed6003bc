"""Domain error taxonomy

Services raise these; the API layer renders them as
``{"detail": ..., "code": ...}`` with the family's HTTP status.
"""


class CateringError(Exception):
    """Base class for all domain errors"""

    status_code = 400
    code = "error"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code


# Validation: malformed input or a selection that can never succeed

class ValidationFailed(CateringError):
    status_code = 400
    code = "validation_failed"


class InvalidDate(ValidationFailed):
    code = "invalid_date"


class MissingRequiredComponent(ValidationFailed):
    code = "missing_required_component"


class DuplicateComponentSelection(ValidationFailed):
    code = "duplicate_component_selection"


class VariantComponentMismatch(ValidationFailed):
    code = "variant_component_mismatch"


class VariantUnavailable(ValidationFailed):
    code = "variant_unavailable"


class PackUnavailable(ValidationFailed):
    code = "pack_unavailable"


class NotTodaysMenu(ValidationFailed):
    code = "not_todays_menu"


class InvalidPackSelection(ValidationFailed):
    code = "invalid_pack_selection"


class ServiceUnavailable(ValidationFailed):
    code = "service_unavailable"


class InactiveAccount(ValidationFailed):
    code = "inactive_account"


class NoInvoiceableOrders(ValidationFailed):
    code = "no_invoiceable_orders"


# Authorization

class AccessDenied(CateringError):
    status_code = 403
    code = "access_denied"


# Lookups

class NotFound(CateringError):
    status_code = 404
    code = "not_found"


# State conflicts

class StateConflict(CateringError):
    status_code = 409
    code = "state_conflict"


class MenuNotPublished(StateConflict):
    code = "menu_not_published"


class MenuNotEditable(StateConflict):
    code = "menu_not_editable"


class DuplicateMenuForDate(StateConflict):
    code = "duplicate_menu_for_date"


class InvalidStateTransition(StateConflict):
    code = "invalid_state_transition"


class OutOfStock(StateConflict):
    code = "out_of_stock"


class OrderingWindowClosed(StateConflict):
    code = "ordering_window_closed"


class DayLocked(OrderingWindowClosed):
    code = "day_locked"


class AlreadyLocked(StateConflict):
    code = "already_locked"


class AlreadyExists(StateConflict):
    code = "already_exists"


class ServiceAlreadyActivated(StateConflict):
    code = "service_already_activated"


class DuplicateInvoice(StateConflict):
    code = "duplicate_invoice"


# Exhaustion

class Exhausted(CateringError):
    status_code = 503
    code = "exhausted"


class InvoiceNumberExhausted(Exhausted):
    code = "invoice_number_exhausted"
