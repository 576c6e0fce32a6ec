# API endpoints
from . import (
    auth, departments, academics, students, employees, library,
    payroll, leave, registration, grading, exams, finance, audit,
)

__all__ = [
    "auth", "departments", "academics", "students", "employees", "library",
    "payroll", "leave", "registration", "grading", "exams", "finance", "audit",
]
