"""Exception types."""


class FormulationError(ValueError):
    """Malformed problem input, raised at construction time."""


class CallbackContractError(RuntimeError):
    """
    Solver and problem disagree on the agreed sizes or call order.

    Signals a programming error in the solver adapter; never recovered from.
    """
