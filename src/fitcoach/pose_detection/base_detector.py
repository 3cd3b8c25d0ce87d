from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np


class BasePoseDetector(ABC):
    """Base class for landmark sources feeding the exercise analyzers."""

    @abstractmethod
    def detect(self, frame: np.ndarray) -> Tuple[bool, Optional[List[List[float]]]]:
        """
        Detect pose landmarks in the given frame.

        Args:
            frame: Input frame as numpy array (BGR)

        Returns:
            Tuple containing:
            - Boolean indicating if detection was successful
            - Ordered list of [x, y, z, visibility] in the index scheme of
              get_landmark_names() (if successful) or None
        """
        pass

    @abstractmethod
    def get_landmark_names(self) -> List[str]:
        """
        Get the list of landmark names in index order.

        Returns:
            List of landmark names
        """
        pass

    def close(self) -> None:
        """Release model resources."""
