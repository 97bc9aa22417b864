from __future__ import annotations

from .analyzer import diagnose
from .errors import InvalidUrlError, LabellyError, SsrfBlockedError
from .models import Diagnosis

__version__ = "0.1.0"

__all__ = ["diagnose", "Diagnosis", "InvalidUrlError", "LabellyError", "SsrfBlockedError"]
