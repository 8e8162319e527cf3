"""pitchcontour: cleaned pitch contours and frequency statistics for recordings.

The staged implementation lives in :mod:`pitchcontour.pipeline`.
"""

from .pipeline import analyze, analyze_file

__all__ = ["analyze", "analyze_file"]

__version__ = "1.0.0"
