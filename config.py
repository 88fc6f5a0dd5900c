# config.py
# Configuration constants for the classroom attendance application.

import os

# Tracking settings
TRACK_IOU_THRESHOLD = 0.3
MAX_CONSECUTIVE_MISSES = 5
VELOCITY_ALPHA = 0.5

# When the detector call itself fails, either leave the tracks untouched (False)
# or treat the frame as an empty detection set so misses accumulate (True).
COUNT_FAILED_FRAMES_AS_MISSES = False

# Capture loop timing (milliseconds)
ANALYSIS_INTERVAL_MS = 2000
RATE_LIMIT_PAUSE_MS = 61000
RESULT_POLL_MS = 50
PREVIEW_REFRESH_MS = 30

# Attendance debounce (seconds)
ATTENDANCE_LOG_INTERVAL_S = 5 * 60

# Camera settings
CAMERA_INDEX = int(os.getenv("ATTENDANCE_CAMERA_INDEX", "0"))
FRAME_WIDTH = 1280
FRAME_HEIGHT = 720
JPEG_QUALITY = 80

# Vision provider
VISION_API_URL = os.getenv("VISION_API_URL", "http://127.0.0.1:8080/v1/detect")
VISION_API_KEY = os.getenv("VISION_API_KEY")
VISION_TIMEOUT_S = 15.0

# Persistence
DATA_DIR = os.getenv("ATTENDANCE_DATA_DIR", "attendance_data")

LOG_LEVEL = os.getenv("ATTENDANCE_LOG_LEVEL", "INFO")
