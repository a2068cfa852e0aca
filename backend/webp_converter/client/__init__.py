from .batch import BatchCoordinator
from .conversion_client import ConversionClient, ConversionRequestError
from .handles import DisplayHandle, HandleRegistry, HandleReleasedError
from .models import AddResult, ConversionState, SourceBlob, TrackedFile

__all__ = [
    "AddResult",
    "BatchCoordinator",
    "ConversionClient",
    "ConversionRequestError",
    "ConversionState",
    "DisplayHandle",
    "HandleRegistry",
    "HandleReleasedError",
    "SourceBlob",
    "TrackedFile",
]
