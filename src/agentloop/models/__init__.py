"""Model interface, request/response types and registry."""

from .model import Model
from .registry import ModelRegistry
from .request import ModelRequest, ModelResponse

__all__ = ["Model", "ModelRegistry", "ModelRequest", "ModelResponse"]
