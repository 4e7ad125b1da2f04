"""Remote inference services."""

from .connection_manager import ConnectionLifecycleManager
from .gradio_backend import GradioHandle, GradioInferenceClient
from .remote_client import ClientOptions, InferenceClient, InferenceHandle, PredictOptions

__all__ = [
    "ClientOptions",
    "ConnectionLifecycleManager",
    "GradioHandle",
    "GradioInferenceClient",
    "InferenceClient",
    "InferenceHandle",
    "PredictOptions",
]
