class ProfileError(Exception):
    """Base class for profile storage failures."""

class CorruptData(ProfileError):
    """Stored blob exists but cannot be read back into a profile."""

class StorageUnavailable(ProfileError):
    """The storage medium itself could not be reached."""
