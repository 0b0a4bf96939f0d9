from __future__ import annotations

__version__ = "0.4.0"

USER_AGENT = f"ai-fdocs/{__version__}"

__all__ = ["USER_AGENT", "__version__"]
