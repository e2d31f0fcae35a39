"""Progress reporting and cooperative cancellation.

The processing stages report text lines and progress counters to a
``WaitingHandler`` and poll ``is_run_canceled()`` at every unit of work
(spectrum, peptide, protein). Cancellation is not an error: a stage that sees
the flag returns immediately and leaves the data it already committed in
place.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)


class WaitingHandler:
    """Collects the report and progress of a validation run.

    Attributes
    ----------
    report : List[str]
        Report lines in the order they were appended
    primary_progress : int
        Number of completed processing stages
    secondary_progress : int
        Progress within the current stage
    secondary_max : int
        Number of work units of the current stage
    """

    def __init__(self):
        self.report: List[str] = []
        self.primary_progress = 0
        self.secondary_progress = 0
        self.secondary_max = 0
        self.finished = False
        self._canceled = False

    def append_report(self, line: str) -> None:
        """Append a report line, mirrored to the module logger."""
        self.report.append(line)
        logger.info(line)

    def increase_progress(self) -> None:
        self.primary_progress += 1

    def start_stage(self, n_units: int) -> None:
        """Reset the secondary progress for a stage of ``n_units`` units."""
        self.secondary_progress = 0
        self.secondary_max = n_units

    def increase_secondary_progress(self, amount: int = 1) -> None:
        self.secondary_progress += amount

    def cancel(self) -> None:
        """Request cancellation; stages stop at their next checkpoint."""
        logger.warning("Run canceled")
        self._canceled = True

    def is_run_canceled(self) -> bool:
        return self._canceled

    def set_run_finished(self) -> None:
        self.finished = True

    def get_report(self) -> str:
        return "\n".join(self.report)
