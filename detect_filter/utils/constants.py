"""
Global constants for the detect filter.
"""
from pathlib import Path

# Project Structure
PACKAGE_DIR = Path(__file__).parent.parent
CONFIGS_DIR = PACKAGE_DIR / "configs"
LOGS_DIR_NAME = "logs"
LOG_FILE_NAME = "detect_filter.log"

# Filter registration
FILTER_ID = "detect_filter"
FILTER_NAME = "Detect filter"

# Setting keys (host configuration surface)
S_MODEL_PATH = "model_path"
S_CONFIDENCE_THRESHOLD = "confidence_threshold"
S_LOG = "log"
S_PREPROCESS = "preprocess"

# Setting defaults / ranges
DEFAULT_MODEL_PATH = ""
DEFAULT_CONFIDENCE_THRESHOLD = 0.2
MIN_CONFIDENCE_THRESHOLD = 0.01
MAX_CONFIDENCE_THRESHOLD = 1.0
CONFIDENCE_THRESHOLD_STEP = 0.01
DEFAULT_LOG = False
DEFAULT_PREPROCESS = "color"
MODEL_FILE_FILTER = "Pytorch models (*.pt)"

# Inference
NOT_READY = -1.0
TARGET_CLASS_INDEX = 0

# Luminance weights (R, G, B)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# Host driver
DEFAULT_RENDER_FPS = 30
DEFAULT_TICK_RATE = 10
STRIDE_ALIGNMENT = 32

# Environment overrides
ENV_MODEL_PATH = "DETECT_FILTER_MODEL_PATH"
ENV_THRESHOLD = "DETECT_FILTER_THRESHOLD"
ENV_LOG = "DETECT_FILTER_LOG"
