from .service import ConversionService, ImageTooLargeError, UnsupportedImageError

__all__ = ["ConversionService", "ImageTooLargeError", "UnsupportedImageError"]
