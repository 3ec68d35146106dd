"""
Core of the detect filter: frame acquisition, preprocessing and inference.

    render callback → FrameCapture → FrameBuffer
    tick callback   → FrameBuffer copy → Preprocessor → InferenceEngine → score
"""
