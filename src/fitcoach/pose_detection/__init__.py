"""
Landmark sources. Importing MediaPipePoseDetector pulls in mediapipe and OpenCV.
"""

from .base_detector import BasePoseDetector

__all__ = ['BasePoseDetector']
