# Re-export all models for convenient imports
from campus_erp.models.user import User, UserRole
from campus_erp.models.audit_log import AuditLog, AuditAction
from campus_erp.models.academic import (
    Faculty, Department, Program, ProgramType, Course, course_prerequisites,
    Semester, CourseClass, ClassSchedule, ClassStatus,
)
from campus_erp.models.people import Student, StudentStatus, Employee, EmployeeStatus
from campus_erp.models.library import (
    BookCategory, Book, BookStatus, BookCopy, CopyStatus, CopyCondition, AcquisitionType,
    Borrowing, BorrowingStatus, LateFeeStatus, Reservation, ReservationStatus,
)
from campus_erp.models.hr import (
    SalaryComponent, ComponentType, CalculationType, EmployeeSalaryComponent,
    Payroll, PayrollStatus, PayrollItem,
    LeaveType, LeaveBalance, LeaveRequest, LeaveStatus,
)
from campus_erp.models.grading import (
    GradeScale, GradeDefinition, GradeComponent, GradeComponentType, GradeEntry,
    Exam, ExamType, ExamStatus,
)
from campus_erp.models.registration import (
    Hold, HoldType, RegistrationPeriod, RegistrationPeriodType,
    Enrollment, EnrollmentStatus, PrerequisiteOverride,
)
from campus_erp.models.finance import Invoice, InvoiceStatus, Payment, PaymentMethod
from campus_erp.models.admission import AdmissionApplication, ApplicationStatus, Gender, EducationLevel
from campus_erp.models.attendance import (
    StudentAttendance, AttendanceStatus, AttendanceExcuse, ExcuseStatus,
    EmployeeAttendance, EmployeeAttendanceStatus,
)

__all__ = [
    # Users & audit
    "User",
    "UserRole",
    "AuditLog",
    "AuditAction",
    # Academic structure
    "Faculty",
    "Department",
    "Program",
    "ProgramType",
    "Course",
    "course_prerequisites",
    "Semester",
    "CourseClass",
    "ClassSchedule",
    "ClassStatus",
    # People
    "Student",
    "StudentStatus",
    "Employee",
    "EmployeeStatus",
    # Library
    "BookCategory",
    "Book",
    "BookStatus",
    "BookCopy",
    "CopyStatus",
    "CopyCondition",
    "AcquisitionType",
    "Borrowing",
    "BorrowingStatus",
    "LateFeeStatus",
    "Reservation",
    "ReservationStatus",
    # HR
    "SalaryComponent",
    "ComponentType",
    "CalculationType",
    "EmployeeSalaryComponent",
    "Payroll",
    "PayrollStatus",
    "PayrollItem",
    "LeaveType",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveStatus",
    # Grading
    "GradeScale",
    "GradeDefinition",
    "GradeComponent",
    "GradeComponentType",
    "GradeEntry",
    "Exam",
    "ExamType",
    "ExamStatus",
    # Registration
    "Hold",
    "HoldType",
    "RegistrationPeriod",
    "RegistrationPeriodType",
    "Enrollment",
    "EnrollmentStatus",
    "PrerequisiteOverride",
    # Finance
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    # Admissions
    "AdmissionApplication",
    "ApplicationStatus",
    "Gender",
    "EducationLevel",
    # Attendance
    "StudentAttendance",
    "AttendanceStatus",
    "AttendanceExcuse",
    "ExcuseStatus",
    "EmployeeAttendance",
    "EmployeeAttendanceStatus",
]
