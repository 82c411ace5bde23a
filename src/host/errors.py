"""Errors raised when talking to the host process."""


class HostError(Exception):
    """Base class for host communication errors."""


class HostUnavailableError(HostError):
    """The host could not be reached or returned an unusable response.

    Logical failures are not exceptions: they arrive as ``success: false``
    in an otherwise valid response.
    """

    def __init__(self, channel: str, detail: str) -> None:
        self.channel = channel
        self.detail = detail
        super().__init__(f"{channel}: {detail}")
