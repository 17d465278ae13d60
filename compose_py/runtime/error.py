from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class ContractError(Exception):
    """
    Structured error raised by generated entry points.

    Supported call patterns:

        ContractError("simple message")
        ContractError("message", code="SOME_CODE", context={...})

    Attributes:
        code: short machine-readable code string
        message: human-readable message
        context: extra fields for debugging / host wiring
    """

    code: str = "CONTRACT_ERROR"

    def __init__(self, message: str = "", *, code: Optional[str] = None, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }


class DeserializeError(ContractError):
    """Incoming payload could not be read into the contract's message schema."""

    code = "DESERIALIZE"


class SerializeError(ContractError):
    """A query result could not be turned into response bytes."""

    code = "QUERY_RESPONSE_SERIALIZE"


class BindingError(ContractError):
    """Artifact and supplied implementations do not fit together."""

    code = "BINDING"


class HandlerError(ContractError):
    """
    A handler (or execute guard) failed. `source` names the component, or the
    interface for interface-declared methods; `error_type` is the contract's
    declared Error type; the original exception is kept as `cause`.
    """

    code = "HANDLER"

    def __init__(
        self,
        message: str,
        *,
        source: str,
        error_type: str,
        cause: Optional[BaseException] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ctx = {"source": source, "error_type": error_type}
        if cause is not None:
            ctx["cause"] = type(cause).__name__
        ctx.update(context or {})
        super().__init__(message, context=ctx)
        self.source = source
        self.error_type = error_type
        self.cause = cause


__all__ = ["ContractError", "DeserializeError", "SerializeError", "BindingError", "HandlerError"]
