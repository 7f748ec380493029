"""
HR sample application: natural keys and a composite job-history key.
"""

from .demo import (
    bootstrap_session,
    career,
    department_location,
    job_history,
    run_demo,
    seed_sample_data,
)
from .models import Department, JobHistory, Location

__all__ = [
    "Department",
    "JobHistory",
    "Location",
    "bootstrap_session",
    "career",
    "department_location",
    "job_history",
    "run_demo",
    "seed_sample_data",
]
