"""Failure outcomes of the refresh pipeline."""


class RefreshError(Exception):
    """A refresh attempt failed and nothing was written."""


class SynthesisError(RefreshError):
    """The synthesis collaborator was unavailable or returned unusable output."""


class StoreWriteError(RefreshError):
    """The digest could not be persisted."""
