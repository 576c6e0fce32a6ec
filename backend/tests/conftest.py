"""
Campus ERP - Test Configuration and Fixtures
"""
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable, Dict

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'

from campus_erp.main import app
from campus_erp.core.database import Base, get_db
from campus_erp.core.security import get_password_hash, create_access_token
from campus_erp.models import (
    User, UserRole,
    Faculty, Department, Program, ProgramType, Course, Semester, CourseClass, ClassSchedule, ClassStatus,
    Student, StudentStatus, Employee, EmployeeStatus,
    RegistrationPeriod, RegistrationPeriodType,
)

fake = Faker()

TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def auth_header(user: User) -> Dict[str, str]:
    token = create_access_token({'sub': str(user.id), 'email': user.email, 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database schema and session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Users ====================

@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory creating an active login account with the given role"""
    async def _make(role: UserRole = UserRole.STUDENT, password: str = 'testpassword123', **kwargs) -> User:
        user = User(
            email=kwargs.pop('email', fake.unique.email()),
            hashed_password=get_password_hash(password),
            full_name=kwargs.pop('full_name', fake.name()),
            role=role,
            is_active=kwargs.pop('is_active', True),
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _make


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def librarian_user(make_user) -> User:
    return await make_user(UserRole.LIBRARIAN)


@pytest.fixture
async def hr_user(make_user) -> User:
    return await make_user(UserRole.HR)


@pytest.fixture
async def finance_user(make_user) -> User:
    return await make_user(UserRole.FINANCE)


@pytest.fixture
async def hod_user(make_user) -> User:
    return await make_user(UserRole.HOD)


@pytest.fixture
async def lecturer_user(make_user) -> User:
    return await make_user(UserRole.LECTURER)


@pytest.fixture
async def student_user(make_user) -> User:
    return await make_user(UserRole.STUDENT)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_header(admin_user)


@pytest.fixture
def librarian_headers(librarian_user: User) -> dict:
    return auth_header(librarian_user)


@pytest.fixture
def hr_headers(hr_user: User) -> dict:
    return auth_header(hr_user)


@pytest.fixture
def finance_headers(finance_user: User) -> dict:
    return auth_header(finance_user)


@pytest.fixture
def hod_headers(hod_user: User) -> dict:
    return auth_header(hod_user)


@pytest.fixture
def lecturer_headers(lecturer_user: User) -> dict:
    return auth_header(lecturer_user)


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return auth_header(student_user)


# ==================== Academic structure ====================

@pytest.fixture
async def faculty(db_session: AsyncSession) -> Faculty:
    faculty = Faculty(name='Faculty of Science', code='SCI')
    db_session.add(faculty)
    await db_session.commit()
    return faculty


@pytest.fixture
async def department(db_session: AsyncSession, faculty: Faculty) -> Department:
    department = Department(name='Computer Science', code='CS', faculty_id=faculty.id)
    db_session.add(department)
    await db_session.commit()
    return department


@pytest.fixture
async def program(db_session: AsyncSession, department: Department) -> Program:
    program = Program(
        name='BSc Computer Science',
        code='BSCS',
        type=ProgramType.BACHELOR,
        duration_years=4,
        total_credits=120,
        department_id=department.id,
    )
    db_session.add(program)
    await db_session.commit()
    return program


@pytest.fixture
def make_course(db_session: AsyncSession, department: Department) -> Callable:
    async def _make(code: str, credits: int = 3) -> Course:
        course = Course(name=f'Course {code}', code=code, credits=credits, department_id=department.id)
        db_session.add(course)
        await db_session.commit()
        return course
    return _make


@pytest.fixture
async def course(make_course) -> Course:
    return await make_course('CS101')


@pytest.fixture
async def semester(db_session: AsyncSession) -> Semester:
    today = date.today()
    semester = Semester(
        name=f'Term {today.year}',
        start_date=today - timedelta(days=30),
        end_date=today + timedelta(days=90),
        is_current=True,
    )
    db_session.add(semester)
    await db_session.commit()
    return semester


@pytest.fixture
async def registration_open(db_session: AsyncSession, semester: Semester) -> RegistrationPeriod:
    now = datetime.utcnow()
    period = RegistrationPeriod(
        semester_id=semester.id,
        type=RegistrationPeriodType.REGULAR,
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=7),
        is_active=True,
    )
    db_session.add(period)
    await db_session.commit()
    return period


@pytest.fixture
def make_class(db_session: AsyncSession, semester: Semester) -> Callable:
    """Factory for an OPEN class; slots are (day_of_week, start, end) tuples"""
    async def _make(course: Course, capacity: int = 30, slots=(), section: str = 'A') -> CourseClass:
        course_class = CourseClass(
            course_id=course.id,
            semester_id=semester.id,
            section=section,
            capacity=capacity,
            enrolled_count=0,
            status=ClassStatus.OPEN,
            schedules=[
                ClassSchedule(day_of_week=day, start_time=start, end_time=end, room='R1')
                for day, start, end in slots
            ],
        )
        db_session.add(course_class)
        await db_session.commit()
        return course_class
    return _make


@pytest.fixture
async def course_class(make_class, course: Course) -> CourseClass:
    return await make_class(course, slots=[(0, '09:00', '10:30')])


# ==================== People ====================

@pytest.fixture
def make_student(db_session: AsyncSession, program: Program) -> Callable:
    counter = {'n': 0}

    async def _make(user: User = None, status: StudentStatus = StudentStatus.ACTIVE) -> Student:
        counter['n'] += 1
        student = Student(
            student_id=f'STU-{date.today().year}-{counter["n"]:04d}',
            full_name=fake.name(),
            email=fake.unique.email(),
            program_id=program.id,
            user_id=user.id if user else None,
            status=status,
            admission_date=date.today(),
        )
        db_session.add(student)
        await db_session.commit()
        return student
    return _make


@pytest.fixture
async def student(make_student, student_user: User) -> Student:
    return await make_student(student_user)


@pytest.fixture
def make_employee(db_session: AsyncSession, department: Department) -> Callable:
    counter = {'n': 0}

    async def _make(user: User = None, base_salary: Decimal = Decimal('1000.00')) -> Employee:
        counter['n'] += 1
        employee = Employee(
            employee_no=f'EMP{counter["n"]:04d}',
            full_name=fake.name(),
            email=fake.unique.email(),
            department_id=department.id,
            user_id=user.id if user else None,
            position='Lecturer',
            base_salary=base_salary,
            hire_date=date(2020, 1, 1),
            status=EmployeeStatus.ACTIVE,
        )
        db_session.add(employee)
        await db_session.commit()
        return employee
    return _make


@pytest.fixture
async def employee(make_employee, make_user) -> Employee:
    return await make_employee(await make_user(UserRole.EMPLOYEE))
