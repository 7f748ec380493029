from datetime import date

import pytest

from keelorm.core import (
    AutoField,
    DateField,
    EntityKey,
    EntityState,
    IntegerField,
    Model,
    ModelConfigurationError,
    StringField,
)


class Employee(Model):
    name = StringField(max_length=50, nullable=False)
    grade = IntegerField(default=1)
    hired_on = DateField()


def test_model_metadata_collects_fields_in_order():
    assert list(Employee._meta.fields.keys()) == ["id", "name", "grade", "hired_on"]
    assert Employee._meta.key_shape.names == ("id",)
    assert Employee._meta.generated_key_field.name == "id"
    assert Employee._meta.table_name == "employee"


def test_model_initializes_defaults_and_starts_transient():
    employee = Employee(name="Alice")
    assert employee.name == "Alice"
    assert employee.grade == 1
    assert employee.pk is None
    assert employee.state is EntityState.TRANSIENT
    assert not employee.identity.is_complete


def test_unknown_constructor_argument_raises():
    with pytest.raises(TypeError):
        Employee(name="Alice", salary=10)


def test_field_conversion_on_assignment():
    employee = Employee(name="Bob", grade="3", hired_on="2001-10-28")
    assert employee.grade == 3
    assert employee.hired_on == date(2001, 10, 28)
    with pytest.raises(ValueError):
        employee.grade = "senior"


def test_non_nullable_field_rejects_none():
    employee = Employee(name="Carol")
    with pytest.raises(ValueError):
        employee.name = None


def test_string_field_enforces_max_length():
    with pytest.raises(ValueError):
        Employee(name="x" * 51)


def test_choices_are_enforced():
    class Shift(Model):
        slot = StringField(choices=("day", "night"), default="day")

    shift = Shift()
    with pytest.raises(ValueError):
        shift.slot = "weekend"


def test_meta_table_and_natural_key():
    class Country(Model):
        class Meta:
            table = "countries"

        country_id = StringField(primary_key=True, max_length=2)
        country_name = StringField()

    assert Country._meta.table_name == "countries"
    assert list(Country._meta.fields) == ["country_id", "country_name"]
    country = Country(country_id="US", country_name="United States")
    assert country.pk == "US"
    assert country.identity == EntityKey.of(country_id="US")


def test_composite_key_exposes_entity_key():
    class Assignment(Model):
        employee_id = IntegerField(primary_key=True)
        start_date = DateField(primary_key=True)

    assignment = Assignment(employee_id=101, start_date=date(1997, 9, 21))
    assert assignment.pk == EntityKey(("employee_id", "start_date"), (101, date(1997, 9, 21)))
    assert Assignment._meta.generated_key_field is None


def test_change_tracking_against_loaded_row():
    employee = Employee._from_row({"id": 1, "name": "Dana", "grade": 2, "hired_on": None})
    assert not employee.is_dirty()
    employee.grade = 3
    assert employee.changed_fields() == ["grade"]
    employee._snapshot()
    assert not employee.is_dirty()


def test_field_named_id_without_primary_key_raises():
    with pytest.raises(ModelConfigurationError):

        class Broken(Model):
            id = IntegerField()


def test_composite_key_cannot_be_generated():
    with pytest.raises(ModelConfigurationError):

        class MixedKey(Model):
            serial = AutoField()
            region = StringField(primary_key=True)


def test_two_fields_on_one_column_raise():
    with pytest.raises(ModelConfigurationError):

        class Clash(Model):
            name = StringField()
            alias = StringField(db_column="name")


def test_to_dict_lists_every_field():
    employee = Employee(name="Eve")
    assert employee.to_dict() == {"id": None, "name": "Eve", "grade": 1, "hired_on": None}
