"""
Error taxonomy for guide generation.

Fatal errors abort a run before the output file is touched. NormalizeWarning
and RotationError are recovered by the caller and only logged.
"""


class GuideError(Exception):
    """Base class for all guide generation failures"""
    pass


class ConfigError(GuideError):
    """Settings are missing, unreadable or invalid"""
    pass


class AuthError(GuideError):
    """Login request failed or returned no usable token"""
    pass


class FetchError(GuideError):
    """A listings request failed or returned an unusable body"""
    pass


class InvalidPageError(FetchError):
    """A listings page decoded as JSON but lacks the expected structure"""
    pass


class NormalizeWarning(GuideError):
    """A single channel or event record is malformed and gets skipped"""
    pass


class GuideWriteError(GuideError):
    """The primary guide file could not be written"""
    pass


class RotationError(GuideError):
    """Historical snapshot handling failed; the primary guide stays valid"""
    pass


class RunCancelledError(GuideError):
    """A run was cancelled before its next network call"""
    pass
