"""Domain exceptions."""


class TextQuizError(Exception):
    """Base class for textquiz errors."""


class SchedulingError(TextQuizError, ValueError):
    """A user's delivery preferences cannot be turned into a UTC instant."""


class InvalidTimezone(SchedulingError):
    def __init__(self, timezone: str) -> None:
        super().__init__(f"Unknown IANA timezone: {timezone!r}")
        self.timezone = timezone


class InvalidDeliveryTime(SchedulingError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Delivery time must be HH:MM, got {value!r}")
        self.value = value


class InvalidPhoneNumber(TextQuizError, ValueError):
    """Phone number cannot be normalized to E.164."""


class TransportError(TextQuizError):
    """Outbound SMS provider rejected or failed a send."""


class UserAlreadyExists(TextQuizError):
    def __init__(self, phone_number: str) -> None:
        super().__init__("Phone number is already registered")
        self.phone_number = phone_number
