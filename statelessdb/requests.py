"""Request decoding, encrypted state handling and request/response processing."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from .logs import new_logger

_log = new_logger("requests")

_DECODER = json.JSONDecoder()

T = TypeVar("T")


class RequestError(Exception):
    """Base class for request processing failures."""


class BadRequestBodyError(RequestError):
    """The request body could not be decoded."""


class DecryptStateError(RequestError):
    """The private state in a request could not be decrypted."""


class EncryptStateError(RequestError):
    """The state could not be encrypted."""


class Request(Protocol):
    """A decoded request that carries optional encrypted private state."""

    @property
    def private(self) -> str: ...

    def load(self, data: Any) -> Any: ...


class Encryptor(Protocol[T]):
    def encrypt(self, state: T) -> str: ...


class Decryptor(Protocol[T]):
    def decrypt(self, data: str, state: T) -> None: ...


R = TypeVar("R", bound=Request)


@dataclass
class ComputeRequest:
    """Body of a request to the compute server."""

    received: int = 0
    public: Optional[Dict[str, Any]] = None
    private_data: str = ""

    @property
    def private(self) -> str:
        """The encrypted state data sent by the client."""
        return self.private_data

    def load(self, data: Any) -> "ComputeRequest":
        """Fill fields from a decoded JSON value; null leaves the request unchanged."""
        if data is None:
            return self
        if not isinstance(data, dict):
            raise TypeError("request body must be a JSON object")
        for key, value in data.items():
            name = key.lower()
            if name == "received":
                if value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError("received must be an integer")
                self.received = value
            elif name == "public":
                if value is not None and not isinstance(value, dict):
                    raise TypeError("public must be an object")
                self.public = value
            elif name == "private":
                if value is None:
                    continue
                if not isinstance(value, str):
                    raise TypeError("private must be a string")
                self.private_data = value
        return self

    def dump(self) -> Dict[str, Any]:
        """Return the JSON object for this request, leaving out empty fields."""
        result: Dict[str, Any] = {}
        if self.received:
            result["received"] = self.received
        if self.public:
            result["public"] = self.public
        if self.private_data:
            result["private"] = self.private_data
        return result


RequestHandler = Callable[[Any, Any], Any]
ResponseHandler = Callable[[Any, str], Any]


class EncryptedRequestManager(Generic[T, R]):
    """Decodes requests and encrypts or decrypts the state they carry."""

    def __init__(
        self,
        encryptor: Encryptor[T],
        decryptor: Decryptor[T],
        new_state: Callable[[], T],
        new_request: Callable[[], R],
    ) -> None:
        self.encryptor = encryptor
        self.decryptor = decryptor
        self.new_state = new_state
        self.new_request = new_request

    def decode_request(self, body: bytes) -> R:
        """Decode a JSON request body; raise BadRequestBodyError if it is invalid."""
        request = self.new_request()
        try:
            text = bytes(body).decode("utf-8") if not isinstance(body, str) else body
            data, _ = _DECODER.raw_decode(text.lstrip())
            request.load(data)
        except (UnicodeDecodeError, ValueError, TypeError) as exc:
            _log.errorf("[EncryptedRequestManager.DecodeRequest]: Bad body error: %s", exc)
            _log.debugf("[EncryptedRequestManager.DecodeRequest]: Bad body is: %r", body)
            raise BadRequestBodyError("bad request body") from exc
        return request

    def decrypt_state(self, private_data: str) -> T:
        """Return a new state, filled from the private data if there is any."""
        state = self.new_state()
        if private_data:
            try:
                self.decryptor.decrypt(private_data, state)
            except Exception as exc:
                _log.errorf("[EncryptedRequestManager.DecryptState] failed to decrypt state: %s", exc)
                raise DecryptStateError("failed to decrypt compute state") from exc
        return state

    def encrypt_state(self, state: T) -> str:
        """Return the state as an encrypted string."""
        try:
            return self.encryptor.encrypt(state)
        except Exception as exc:
            _log.errorf("[EncryptedRequestManager.EncryptState]: encrypting: error: %s", exc)
            raise EncryptStateError("compute state encryption failed") from exc

    def handle_with(self, handle_request: RequestHandler) -> "RequestResponseManager[T, R]":
        """Bind a request handler, giving a manager that processes whole requests."""
        return RequestResponseManager(self, handle_request)


class RequestResponseManager(Generic[T, R]):
    """Runs a request through decoding, decryption, handling and encryption."""

    def __init__(
        self,
        parent: EncryptedRequestManager[T, R],
        handle_request: RequestHandler,
    ) -> None:
        self._parent = parent
        self._handle_request = handle_request
        self._handle_response: Optional[ResponseHandler] = None
        self._methods: List[str] = []

    @property
    def methods(self) -> List[str]:
        """The HTTP methods this handler accepts."""
        return self._methods

    def process_bytes(self, body: bytes) -> Any:
        """Process a request body and return the response object, or None."""
        request = self._parent.decode_request(body)
        state: Any = None
        private_string = request.private
        if private_string:
            state = self._parent.decrypt_state(private_string)
        state = self._handle_request(request, state)
        private = self._parent.encrypt_state(state)
        if self._handle_response is not None:
            return self._handle_response(state, private)
        return None

    def with_response(self, handler: ResponseHandler) -> "RequestResponseManager[T, R]":
        """Set the function that builds the response from state and private data."""
        self._handle_response = handler
        return self

    def with_methods(self, *args: str) -> "RequestResponseManager[T, R]":
        """Add accepted HTTP methods."""
        self._methods.extend(args)
        return self