"""Employee directory — Employee and EmployeeManager models, profile lookups."""

from workforce.employees.models import Employee, EmployeeManager

__all__ = ["Employee", "EmployeeManager"]
