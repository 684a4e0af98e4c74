"""
Image loaded by the user to be used as a baseline instead of a live capture.
"""

from pathlib import Path
from typing import Optional, Union


class BaselineImage:
    """An uploaded image plus whether (and where) it became a baseline."""

    def __init__(self, image: bytes, filename: str) -> None:
        self.image = image
        self.filename = filename
        self.step_url: Optional[str] = None
        self.should_use = False

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BaselineImage":
        path = Path(path)
        return cls(path.read_bytes(), path.name)

    def is_baseline(self) -> bool:
        """True once the image was submitted and received a step URL."""
        return bool(self.step_url)
