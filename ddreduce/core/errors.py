"""Reduction-specific exceptions for error handling."""

from typing import Any, Optional


class SetupError(Exception):
    """Raised when a reduction cannot start or cannot deliver its result.

    This exception is fatal for the whole run. It covers:
    - Unreadable or unparsable input
    - Original input judged not interesting by the oracle
    - Output that cannot be written

    Attributes:
        message: Description naming the failing precondition
        path: File path involved in the failure (optional)
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        """Initialize SetupError exception.

        Args:
            message: Error message naming the failing precondition
            path: File path involved in the failure (optional)
        """
        super().__init__(message)
        self.path = path


class ParseError(SetupError):
    """Raised by a codec when input bytes do not form a valid artifact.

    Attributes:
        message: Description of the parse failure
        path: File path being parsed (optional)
        location: Element name or line where the problem was found (optional)
    """

    def __init__(
        self, message: str, path: Optional[str] = None, location: Optional[str] = None
    ) -> None:
        super().__init__(message, path=path)
        self.location = location


class OracleInfraError(Exception):
    """Raised when the interestingness test could not be run to a verdict.

    This exception is recoverable and scoped to one trial:
    - The executable could not be spawned
    - The process was terminated by a signal
    - The per-trial timeout expired

    The oracle invoker converts it into an infrastructure-failure Verdict so
    the session keeps going.

    Attributes:
        message: Description of the failure
        command: The command that was being run (optional)
        timed_out: True when the failure was a timeout
    """

    def __init__(
        self, message: str, command: Optional[Any] = None, timed_out: bool = False
    ) -> None:
        super().__init__(message)
        self.command = command
        self.timed_out = timed_out


class RepairAnomaly(Exception):
    """Raised when repair cannot produce a structurally resolvable artifact.

    Repair is total for well-formed artifacts, so this signals a bug in a
    pass-specific rewrite or a malformed artifact. The bisector treats the
    affected chunk as not removable.

    Attributes:
        message: Description of the anomaly
        element_id: Identifier of the offending element (optional)
    """

    def __init__(self, message: str, element_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.element_id = element_id
