"""Error taxonomy for the relay core."""


class RelayError(Exception):
    """Base class for relay errors."""


class NotFoundError(RelayError):
    """A user, conversation or channel lookup missed after a remote fetch."""


class InvalidArgumentError(RelayError):
    """A control command argument failed validation."""

    def __init__(self, argument: str, value: str = ""):
        self.argument = argument
        self.value = value
        super().__init__(f"{argument}'s value is invalid")


class DuplicateBindingError(RelayError):
    """A local channel is already bound to a different conversation key."""


class PromptTimeoutError(RelayError, TimeoutError):
    """An interactive prompt deadline elapsed."""


class RelayDeliveryError(RelayError):
    """Sending a message to either platform failed; the message is dropped."""


class LoginFailedError(RelayError):
    """The remote login flow ended in a terminal failure."""

    def __init__(self, result):
        self.result = result
        super().__init__(f"Could not login: {getattr(result, 'name', result)}")
