from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from ..exercise_analysis.pose_utils import LANDMARK_NAMES
from .base_detector import BasePoseDetector


class MediaPipePoseDetector(BasePoseDetector):
    """MediaPipe implementation of the landmark source."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5, model_complexity: int = 1):
        """
        Initialize the MediaPipe pose detector.

        Args:
            min_detection_confidence: Minimum confidence for pose detection
            min_tracking_confidence: Minimum confidence for pose tracking
            model_complexity: Pose landmark model size (0, 1 or 2)
        """
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence
        )

    def detect(self, frame: np.ndarray) -> Tuple[bool, Optional[List[List[float]]]]:
        """
        Detect pose landmarks using MediaPipe.

        Args:
            frame: Input frame as numpy array (BGR, as read by OpenCV)

        Returns:
            Tuple of (success, ordered landmark list or None)
        """
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.pose.process(frame_rgb)

        if not results.pose_landmarks:
            return False, None

        landmarks = [
            [landmark.x, landmark.y, landmark.z, landmark.visibility]
            for landmark in results.pose_landmarks.landmark
        ]
        return True, landmarks

    def get_landmark_names(self) -> List[str]:
        """Get the list of landmark names provided by MediaPipe."""
        return list(LANDMARK_NAMES)

    def close(self) -> None:
        self.pose.close()
