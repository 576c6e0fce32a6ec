from fastapi import APIRouter
from campus_erp.api.v1.endpoints import (
    auth, departments, academics, students, employees, library,
    payroll, leave, registration, grading, exams, finance, audit,
    admissions, attendance,
)

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Health check for load balancers probing under the API prefix"""
    return {"status": "healthy", "service": "campus-erp"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(departments.router, prefix="/departments", tags=["Departments"])
api_router.include_router(academics.router, prefix="/academics", tags=["Academic Structure"])
api_router.include_router(students.router, prefix="/students", tags=["Students"])
api_router.include_router(employees.router, prefix="/employees", tags=["Employees"])
api_router.include_router(library.router, prefix="/library", tags=["Library"])
api_router.include_router(payroll.router, prefix="/payroll", tags=["Payroll"])
api_router.include_router(leave.router, prefix="/leave", tags=["Leave"])
api_router.include_router(registration.router, tags=["Registration"])
api_router.include_router(grading.router, prefix="/grading", tags=["Grading"])
api_router.include_router(exams.router, prefix="/exams", tags=["Exams"])
api_router.include_router(finance.router, prefix="/finance", tags=["Finance"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["Audit"])
api_router.include_router(admissions.router, prefix="/admissions", tags=["Admissions"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
