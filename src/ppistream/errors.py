"""Exceptions raised by ppistream."""


class ContractViolation(ValueError):
    """A caller passed arguments that can never be valid.

    Missing columns, malformed rows, out-of-range parameters and reads
    through a stale buffer handle all end up here.  These are not meant to
    be caught and retried; fix the call site instead.
    """
