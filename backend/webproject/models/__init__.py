from .image_uploads import ImageUpload

__all__ = ["ImageUpload"]
