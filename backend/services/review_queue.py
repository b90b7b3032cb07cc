"""
Review Queue Service

In-memory queue of applications awaiting human review, backing the demo
/api endpoints. Decisions move an application out of "pending" and feed the
daily counters reported by /api/metrics.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models.review import Application, DecisionRequest, MetricsData
from utils.datetime_utils import utc_now
from utils.logging import get_logger

logger = get_logger("review-queue")

SAMPLE_APPLICATIONS = [
    Application(id="APP-2025-001234", type="Business License Application", applicant_name="Acme Corporation",
                submission_date="2025-01-25T14:30:00Z", status="pending"),
    Application(id="APP-2025-001235", type="Grant Proposal", applicant_name="Tech Innovations LLC",
                submission_date="2025-01-25T16:45:00Z", status="pending"),
    Application(id="APP-2025-001236", type="Loan Application", applicant_name="Small Business Partners",
                submission_date="2025-01-24T09:15:00Z", status="approved"),
    Application(id="APP-2025-001237", type="Permit Request", applicant_name="Construction Co.",
                submission_date="2025-01-24T11:20:00Z", status="rejected"),
    Application(id="APP-2025-001238", type="Research Grant", applicant_name="University Research Lab",
                submission_date="2025-01-23T13:10:00Z", status="approved"),
    Application(id="APP-2025-001239", type="Export License", applicant_name="Global Trade Inc.",
                submission_date="2025-01-23T15:25:00Z", status="pending"),
]

DECISION_STATUS = {"approve": "approved", "reject": "rejected"}


class ApplicationNotFoundError(KeyError):
    """Raised when a decision targets an unknown application."""


class ReviewQueue:
    """Applications plus the log of decisions recorded against them."""

    def __init__(self, applications: Optional[List[Application]] = None):
        seed = applications if applications is not None else SAMPLE_APPLICATIONS
        self._applications: Dict[str, Application] = {app.id: app.model_copy() for app in seed}
        self._decisions: List[Tuple[str, str, datetime]] = []

    def list_applications(self) -> List[Application]:
        return list(self._applications.values())

    def record_decision(self, application_id: str, decision: DecisionRequest, now: Optional[datetime] = None) -> Application:
        """Apply a decision and return the updated application."""
        application = self._applications.get(application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        updated = application.model_copy(update={"status": DECISION_STATUS[decision.decision]})
        self._applications[application_id] = updated
        self._decisions.append((application_id, decision.decision, now or utc_now()))

        logger.info(
            "Decision recorded",
            application_id=application_id,
            decision=decision.decision,
            comments=decision.comments,
        )
        return updated

    def metrics(self, now: Optional[datetime] = None) -> MetricsData:
        """Counters for the metrics endpoint; "today" is the current UTC day."""
        today = (now or utc_now()).date()
        todays = [d for _, d, at in self._decisions if at.date() == today]
        statuses = [app.status for app in self._applications.values()]

        return MetricsData(
            applications_processed=sum(1 for s in statuses if s != "pending"),
            pending_review=sum(1 for s in statuses if s == "pending"),
            approved_today=todays.count("approve"),
            rejected_today=todays.count("reject"),
        )


# Global review queue instance
review_queue = ReviewQueue()
