"""
Utility helpers for running the HR example end-to-end.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from keelorm.adapters import ConnectionConfig, SQLiteAdapter
from keelorm.persistence import Session
from keelorm.schema import SchemaBuilder

from .models import Department, JobHistory, Location

MODELS = (Location, Department, JobHistory)


def bootstrap_session(dsn: str = "sqlite:///:memory:") -> Session:
    session = Session(SQLiteAdapter(), connection_config=ConnectionConfig.from_dsn(dsn))
    SchemaBuilder(session.dialect).create_tables(session.store, MODELS)
    return session


def seed_sample_data(session: Session) -> None:
    session.persist(
        Location(location_id=1700, city="Seattle", country_id="US", state_province="Washington"),
        Location(location_id=2400, city="London", country_id="UK", postal_code="2901"),
    )
    session.persist(
        Department(department_id=10, department_name="Administration", manager_id=200, location_id=1700),
        Department(department_id=40, department_name="Human Resources", manager_id=203, location_id=2400),
    )
    session.persist(
        JobHistory(
            employee_id=101,
            start_date=date(1997, 9, 21),
            end_date=date(2001, 10, 27),
            job_id="AC_ACCOUNT",
            department_id=10,
        ),
        JobHistory(
            employee_id=101,
            start_date=date(2001, 10, 28),
            end_date=date(2005, 3, 15),
            job_id="AC_MGR",
            department_id=40,
        ),
    )
    session.flush()


def job_history(session: Session, employee_id: int, start_date: date) -> Optional[JobHistory]:
    return session.find(JobHistory, employee_id=employee_id, start_date=start_date)


def department_location(session: Session, department_id: int) -> Optional[Dict[str, str]]:
    """
    Resolve a department's city through its raw location key.
    """

    department = session.find(Department, department_id)
    if department is None:
        return None
    location = session.find(Location, department.location_id)
    return {
        "department": department.department_name,
        "city": location.city if location is not None else "",
    }


def career(session: Session, employee_id: int) -> List[JobHistory]:
    return (
        session.query(JobHistory)
        .filter(employee_id=employee_id)
        .order_by("start_date")
        .all()
    )


def run_demo(dsn: str = "sqlite:///:memory:") -> List[str]:
    session = bootstrap_session(dsn)
    try:
        seed_sample_data(session)
        session.clear()
        lines = []
        for entry in career(session, 101):
            place = department_location(session, entry.department_id)
            lines.append(f"{entry.start_date.isoformat()} {entry.job_id} @ {place['city']}")
        return lines
    finally:
        session.close()


if __name__ == "__main__":
    for line in run_demo():
        print(line)
