"""Domain errors raised by the ordering and payment services.

Every error carries the HTTP status it maps to and a short machine ``code``;
``qrdine.main`` renders them as ``{"detail": ..., "code": ...}``.
"""


class OrderingError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(OrderingError):
    status_code = 404
    code = "not_found"


class TableInactive(OrderingError):
    code = "table_inactive"


class ItemUnavailable(OrderingError):
    code = "item_unavailable"


class ModifierRuleViolation(OrderingError):
    code = "modifier_rule"


class InvalidModifier(ModifierRuleViolation):
    code = "invalid_modifier"


class MissingRequiredGroup(ModifierRuleViolation):
    code = "missing_required_group"


class TooFewSelections(ModifierRuleViolation):
    code = "too_few_selections"


class TooManySelections(ModifierRuleViolation):
    code = "too_many_selections"


class SingleSelectionViolated(ModifierRuleViolation):
    code = "single_selection_violated"


class DuplicateModifier(ModifierRuleViolation):
    code = "duplicate_modifier"


class InvalidStatusTransition(OrderingError):
    code = "invalid_status_transition"


class OrderLocked(OrderingError):
    code = "order_locked"


class TableConflict(OrderingError):
    """The table row changed under us; the client may resubmit."""
    status_code = 409
    code = "table_conflict"


class OrderNumberConflict(OrderingError):
    status_code = 409
    code = "order_number_conflict"
