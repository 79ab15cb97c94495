from .presence import DetectionModels, OpenCVPresenceDetector, decode_image, shared_models

__all__ = ["DetectionModels", "OpenCVPresenceDetector", "decode_image", "shared_models"]
