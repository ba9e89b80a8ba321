"""Per-invocation state of a device lab run."""

import logging
from dataclasses import dataclass, field

from device_lab_action.annotations import PipelineAnnotator

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class RunSession:
    """Holds the build outcome of one invocation.

    Once the run is marked failed it stays failed; a later success cannot
    clear it.
    """

    annotator: PipelineAnnotator = field(default_factory=PipelineAnnotator)
    marked_failed: bool = False

    def mark_failed(self) -> None:
        """Mark the build as failed, tagging it only once."""
        if self.marked_failed:
            return
        log.info("Marking build as failed")
        self.annotator.add_build_tag("FAIL")
        self.marked_failed = True

    def mark_success(self) -> None:
        """Tag the build as successful unless it already failed."""
        if self.marked_failed:
            return
        self.annotator.add_build_tag("SUCCESS")
