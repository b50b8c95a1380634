from typing import Generic, TypeVar, Optional, Any, Dict, Union
from http import HTTPStatus

T = TypeVar('T')  # Generic type variable


class Result(Generic[T]):
    """
    Outcome of an upload, import or export pipeline.

    A successful Result carries the pipeline's payload; a failed one carries
    the message returned to the client and the HTTP status to respond with.

    Attributes:
        success (bool): Indicates if the operation was successful
        data (Optional[T]): The payload (only present when success is True)
        error (Optional[str]): Client-facing error message (only present when success is False)
        status_code (HTTPStatus): HTTP status code (default: 200 for success, 400 for failure)
    """
    def __init__(
        self,
        success: bool,
        data: Optional[T] = None,
        error: Optional[str] = None,
        status_code: Optional[Union[int, HTTPStatus]] = None
    ):
        self.success = success
        self.data = data
        self.error = error

        if status_code is None:
            self.status_code = HTTPStatus.OK if success else HTTPStatus.BAD_REQUEST
        else:
            self.status_code = HTTPStatus(status_code)

    @classmethod
    def ok(cls, data: T, status_code: Optional[Union[int, HTTPStatus]] = HTTPStatus.OK) -> "Result[T]":
        """
        Create a successful Result with the provided payload.

        Args:
            data (T): The payload to be wrapped in the Result
            status_code (Optional[Union[int, HTTPStatus]], optional): HTTP status code. Defaults to 200 OK.

        Returns:
            Result[T]: A successful Result containing the payload
        """
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def invalid_input(cls, error: str = "Invalid input data") -> "Result[T]":
        """Failed Result for a request the client must correct (400)."""
        return cls(success=False, error=error, status_code=HTTPStatus.BAD_REQUEST)

    @classmethod
    def payload_too_large(cls, error: str = "File too large.") -> "Result[T]":
        """Failed Result for an upload over the configured size limit (413)."""
        return cls(success=False, error=error, status_code=HTTPStatus(413))

    @classmethod
    def server_error(cls, error: str = "Internal server error") -> "Result[T]":
        """Failed Result for an unexpected processing or storage failure (500)."""
        return cls(success=False, error=error, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)

    def is_failure(self) -> bool:
        return not self.success

    def to_dict(self) -> Dict[str, Any]:
        """
        Error body returned to the client for a failed Result.

        Returns:
            Dict[str, Any]: ``{"error": message}``
        """
        return {"error": self.error}
