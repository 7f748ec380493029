"""
HR mappings: natural keys, raw foreign keys and a composite key.
"""

from __future__ import annotations

from keelorm.core import DateField, IdReference, IntegerField, Model, StringField


class Location(Model):
    class Meta:
        table = "locations"

    location_id = IntegerField(primary_key=True)
    city = StringField(nullable=False, max_length=30)
    country_id = StringField(max_length=2, db_type="CHAR(2)")
    street_address = StringField(max_length=40)
    postal_code = StringField(max_length=12)
    state_province = StringField(max_length=25)


class Department(Model):
    class Meta:
        table = "departments"

    department_id = IntegerField(primary_key=True)
    department_name = StringField(nullable=False, max_length=30)
    manager_id = IntegerField()
    location_id = IdReference(Location)


class JobHistory(Model):
    """
    One employment period, identified by employee and start date.

    The department column carries no storage-level constraint; the session
    checks it before writing instead.
    """

    class Meta:
        table = "job_history"

    employee_id = IntegerField(primary_key=True)
    start_date = DateField(primary_key=True)
    end_date = DateField(nullable=False)
    job_id = StringField(nullable=False, max_length=10)
    department_id = IdReference(Department, db_constraint=False)
