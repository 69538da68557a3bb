"""Exception hierarchy for manualgrab.

Everything except :class:`NodeFailure` is fatal to a run.  A
``NodeFailure`` is only raised when a single document could not be saved
and ``--ignore-save-errors`` was not given.
"""

from __future__ import annotations


class ManualGrabError(RuntimeError):
    """Base class for errors that end a run with a diagnostic."""


class FatalSetup(ManualGrabError):
    """Output/cache directories, remote browser or cookies are unusable."""


class AuthenticationFailure(ManualGrabError):
    """The portal rejected the session (expired or not logged in)."""


class PlanAcquisitionFailure(ManualGrabError):
    """The table of contents could not be fetched or parsed."""


class NodeFailure(ManualGrabError):
    """A document failed to save and the run was aborted.

    *result* holds the outcomes of the nodes finished before the failure;
    the failing node itself is *failed*, not part of *result*.
    """

    def __init__(self, message: str, result, failed=None) -> None:
        super().__init__(message)
        self.result = result
        self.failed = failed
