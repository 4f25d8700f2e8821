class BookingError(Exception):
    """Base class for every error the booking flow shows to the user."""

    default_message = "Booking failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class SlotUnavailableError(BookingError):
    default_message = "This time slot is already booked"


class AvailabilityFetchError(BookingError):
    default_message = "Could not load booked slots"


class SubmissionError(BookingError):
    default_message = "Failed to create booking"


class BookingConflictError(SubmissionError):
    default_message = "This slot is already booked"


class BookingValidationError(SubmissionError):
    default_message = "Invalid booking request"


class GenericSubmissionError(SubmissionError):
    pass


class BookingLookupError(BookingError):
    default_message = "Could not load bookings"


class CancellationError(BookingError):
    default_message = "Failed to cancel booking"
