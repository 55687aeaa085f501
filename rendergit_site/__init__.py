"""Static HTML pages and Atom feeds for a git repository's history."""

from .config import RenderConfig
from .errors import CacheFormatError, GitError, ObjectNotFoundError, RenderError
from .models import DiffLimits
from .site import BuildResult, build_site
from .vcs import Repository

__version__ = "0.1.0"

__all__ = [
    "BuildResult",
    "CacheFormatError",
    "DiffLimits",
    "GitError",
    "ObjectNotFoundError",
    "RenderConfig",
    "RenderError",
    "Repository",
    "build_site",
]
