from pydantic import BaseModel, model_validator
from typing import Any, Literal, Optional

ErrorCode = Literal[
    "not_found",
    "forbidden",
    "invalid_transition",
    "unavailable",
    "validation",
    "database",
]

class RpcError(BaseModel):
    code: ErrorCode
    message: str

class RpcResult(BaseModel):
    """Outcome of a backend operation: a payload or an error, never both."""
    data: Optional[Any] = None
    error: Optional[RpcError] = None

    @model_validator(mode="after")
    def data_xor_error(self):
        if self.error is not None and self.data is not None:
            raise ValueError("RpcResult carries either data or an error")
        return self

    @property
    def ok(self):
        return self.error is None

    @classmethod
    def success(cls, data=None):
        return cls(data=data)

    @classmethod
    def failure(cls, code, message):
        return cls(error=RpcError(code=code, message=message))
