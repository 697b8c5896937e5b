from .job_state import JOB_TRANSITIONS, can_transition
from .bid_state import BID_TRANSITIONS

__all__ = ["JOB_TRANSITIONS", "BID_TRANSITIONS", "can_transition"]
