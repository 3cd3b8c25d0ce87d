import argparse
import logging
import os
import sys
import traceback
from typing import List, Optional, Union

import cv2
import numpy as np

from .exercise_analysis.exercise_types import DifficultyLevel, ExerciseType
from .feedback.coach_messages import CoachMessageSelector
from .trainer import ExerciseSession, SessionUpdate

WINDOW_NAME = "fitcoach"


def _draw_overlay(frame: np.ndarray, update: SessionUpdate, message: Optional[str]) -> None:
    """
    Draw session state on the frame.

    Args:
        frame: Frame to draw on (modified in place)
        update: Latest session update
        message: Most recent coach message, if any
    """
    analysis = update.analysis
    if analysis is None or not analysis.is_visible:
        cv2.putText(frame, "Step into the frame", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 255), 2)
    else:
        quality_colors = {"good": (0, 255, 0), "warn": (0, 165, 255), "bad": (0, 0, 255)}
        form = analysis.form_feedback
        lines = [
            (f"Stage: {analysis.stage.value}", (0, 255, 0)),
            (f"Reps: {analysis.reps}", (0, 255, 0)),
            (f"Form: {form.quality.value} ({form.score})", quality_colors[form.quality.value]),
            (f"Tempo: {update.tempo.tempo_quality.value} (target {update.tempo.recommended_tempo})", (255, 255, 0)),
        ]
        for idx, (text, color) in enumerate(lines):
            cv2.putText(frame, text, (10, 30 + idx * 30), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)

        height, width = frame.shape[:2]
        for correction in update.corrections:
            start = (int(correction.current[0] * width), int(correction.current[1] * height))
            end = (int(correction.target[0] * width), int(correction.target[1] * height))
            color = (0, 0, 255) if correction.severity == "error" else (0, 165, 255)
            cv2.arrowedLine(frame, start, end, color, 2)

    if update.resting:
        cv2.putText(frame, f"Rest: {update.rest_left:.0f}s", (10, frame.shape[0] - 70),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 0), 2)
    cv2.putText(frame, f"Time left: {update.time_left:.0f}s", (10, frame.shape[0] - 40),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
    if message:
        cv2.putText(frame, message, (10, frame.shape[0] - 10), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 200, 255), 2)


def run(source: Union[int, str], session: ExerciseSession, show: bool = True) -> int:
    """
    Drive the session from a camera or a video file.

    Args:
        source: Camera device ID or path to a video file
        session: Session to feed
        show: Display an OpenCV window with the overlay

    Returns:
        Number of frames processed
    """
    from .pose_detection.mediapipe_detector import MediaPipePoseDetector

    cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video source: {source}")

    detector = MediaPipePoseDetector()
    selector = CoachMessageSelector()
    message = None
    frame_count = 0
    try:
        while cap.isOpened():
            ret, frame = cap.read()
            if not ret:
                break
            frame_count += 1
            _, landmarks = detector.detect(frame)
            update = session.process_frame(landmarks)
            for event in update.events:
                text = selector.select(event)
                if text:
                    message = text
                    print(f"[COACH] {text}")
            if update.completed:
                next_type = session.next_exercise(rest=True)
                if next_type is None:
                    print("[COACH] Workout complete!")
                    break
            if show:
                _draw_overlay(frame, update, message)
                cv2.imshow(WINDOW_NAME, frame)
                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    break
                if key == ord('p'):
                    if session.paused:
                        session.resume()
                    else:
                        session.pause()
                if key == ord('n'):
                    session.next_exercise()
                if key == ord('b'):
                    session.previous_exercise()
                if key == ord('r'):
                    session.reset()
    except KeyboardInterrupt:
        print("\n[INFO] KeyboardInterrupt received. Exiting gracefully...")
    finally:
        cap.release()
        detector.close()
        if show:
            cv2.destroyAllWindows()
    return frame_count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Camera-based exercise coach")
    parser.add_argument('--mode', type=str, choices=['camera', 'video'], default='camera',
                        help='Run mode: camera (default) or video')
    parser.add_argument('--video', type=str, help='Path to the video file to analyze (required if mode=video)')
    parser.add_argument('--camera', type=int, default=0, help='Camera device ID')
    parser.add_argument('--exercise', type=str, default=ExerciseType.ARM_RAISE.value,
                        choices=[t.value for t in ExerciseType], help='Exercise to start with')
    parser.add_argument('--difficulty', type=str, default=DifficultyLevel.BEGINNER.value,
                        choices=[d.value for d in DifficultyLevel], help='Difficulty level')
    parser.add_argument('--no-display', action='store_true', help='Do not open a preview window')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Log level for the analyzers')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the exercise coach."""
    args = build_parser().parse_args(argv)

    for name in ("ExerciseAnalyzer", "TempoAnalyzer", "MotionAnalyzer", "ExerciseSession", "CoachMessages"):
        logging.getLogger(name).setLevel(args.log_level)

    if args.mode == 'video':
        if not args.video:
            print("Error: --video argument is required when mode is 'video'.")
            return 1
        if not os.path.isfile(args.video):
            print(f"Video file not found: {args.video}")
            return 1
        source: Union[int, str] = args.video
    else:
        source = args.camera

    try:
        print("Initializing exercise coach...")
        session = ExerciseSession(exercise_type=args.exercise, difficulty=args.difficulty)
        frames = run(source, session, show=not args.no_display)
        print(f"Processed {frames} frames.")
    except Exception as e:
        print(f"Error running coach: {e}")
        traceback.print_exc()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
