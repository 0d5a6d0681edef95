from __future__ import annotations

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date


class LabresError(Exception):
    pass


class ContextAlreadyExists(LabresError):
    pass


class UnknownContext(LabresError):
    pass


class ContextIsLocked(LabresError):
    pass


class UnknownService(LabresError):
    pass


class ValidationError(LabresError):
    """ Base class of all recoverable errors caused by user input. The
    message is meant to be shown to the user.

    """

    message = 'The reservation is invalid'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    def __str__(self) -> str:
        return self.args[0]  # type: ignore[no-any-return]


class MissingTimeField(ValidationError):

    __slots__ = ('day', )

    def __init__(self, day: date | None = None):
        self.day = day

        if day is None:
            super().__init__('Please select both start and end times')
        else:
            super().__init__(
                f'Please select both start and end times for {day:%a %b %d}'
            )


class EndBeforeStart(ValidationError):

    __slots__ = ('day', )

    def __init__(self, day: date | None = None):
        self.day = day

        if day is None:
            super().__init__('End time must be after start time')
        else:
            super().__init__(
                f'End time must be after start time for {day:%a %b %d}'
            )


class NoDatesSelected(ValidationError):
    message = 'Please select at least one date'


class TooManyDates(ValidationError):

    __slots__ = ('limit', )

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f'You can choose up to {limit} dates')


class InvalidMachineQuantity(ValidationError):

    __slots__ = ('day', )

    def __init__(self, day: date | None = None):
        self.day = day

        if day is None:
            super().__init__('Please select at least one machine')
        else:
            super().__init__(
                f'Please select at least one machine for {day:%a %b %d}'
            )


class MachineQuantityExceeded(ValidationError):

    __slots__ = ('day', 'quantity', 'limit')

    def __init__(self, day: date, quantity: int, limit: int):
        self.day = day
        self.quantity = quantity
        self.limit = limit
        super().__init__(
            f'Only {limit} machine(s) are available on {day:%a %b %d}, '
            f'{quantity} requested'
        )


class MachinesUnavailable(ValidationError):
    """ Raised on submission if the machines were taken in the meantime. """

    __slots__ = ('days', )

    def __init__(self, days: Sequence[date]):
        self.days = tuple(days)
        listed = ', '.join(f'{d:%a %b %d}' for d in self.days)
        super().__init__(
            f'Not enough machines are available anymore on {listed}'
        )


class UnfinishedTimeSlots(ValidationError):

    __slots__ = ('count', )

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f'{count} time slot(s) must be marked as Completed or '
            'Cancelled first'
        )


class RequestInvalid(ValidationError):
    """ Carries all validation errors found in a request at once. """

    __slots__ = ('errors', )

    def __init__(self, errors: Sequence[ValidationError]):
        self.errors = tuple(errors)
        super().__init__('\n'.join(str(e) for e in self.errors))


class UnknownReservation(LabresError):
    pass


class UnknownServiceId(LabresError):
    pass


class FetchError(LabresError):
    """ Raised (or reported) if one of the external fetches failed. """

    __slots__ = ('source', 'original')

    def __init__(self, source: str, original: BaseException | None = None):
        self.source = source
        self.original = original
        super().__init__(f'Failed to fetch {source}')


class StateInvariantViolation(LabresError):
    """ Programming errors, these should never be raised during normal
    operation.

    """


class DuplicateDaySelection(StateInvariantViolation):
    pass


class FrozenTimeSlot(StateInvariantViolation):
    pass


class InvalidStatusTransition(StateInvariantViolation):
    pass


class NotTimezoneAware(LabresError):
    pass
