"""
Unit Tests for Admission and Attendance API Endpoints
"""
import pytest
from datetime import date, datetime
from httpx import AsyncClient

from campus_erp.core.security import create_access_token
from campus_erp.models import Enrollment, EnrollmentStatus, UserRole


def _bearer(user):
    token = create_access_token({'sub': user.id, 'email': user.email, 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


def _application_payload(program, email='zahra@applicant.test'):
    return {
        'first_name': 'Zahra',
        'last_name': 'Ahmed',
        'date_of_birth': '2006-11-02',
        'gender': 'female',
        'email': email,
        'phone': '+252610000002',
        'previous_education_level': 'secondary',
        'program_id': program.id,
    }


class TestAdmissionEndpoints:
    """Application to student through the API"""

    @pytest.mark.asyncio
    async def test_apply_review_and_enroll(self, client: AsyncClient, hod_headers, program):
        created = await client.post('/api/v1/admissions', json=_application_payload(program), headers=hod_headers)
        assert created.status_code == 201
        application = created.json()['data']
        assert application['status'] == 'pending'
        assert application['application_no'].startswith(f'APP-{datetime.utcnow().year}-')

        reviewed = await client.post(
            f"/api/v1/admissions/{application['id']}/review", json={'status': 'approved'}, headers=hod_headers
        )
        assert reviewed.status_code == 200
        assert reviewed.json()['data']['status'] == 'approved'

        enrolled = await client.post(f"/api/v1/admissions/{application['id']}/enroll", headers=hod_headers)
        assert enrolled.status_code == 200
        result = enrolled.json()['data']
        assert result['student_number'].startswith(f'STU-{datetime.utcnow().year}-')

        login = await client.post(
            '/api/v1/auth/login',
            json={'email': result['email'], 'password': result['temporary_password']},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_enroll_pending_application_is_bad_request(self, client: AsyncClient, hod_headers, program):
        created = await client.post('/api/v1/admissions', json=_application_payload(program), headers=hod_headers)

        response = await client.post(
            f"/api/v1/admissions/{created.json()['data']['id']}/enroll", headers=hod_headers
        )

        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'

    @pytest.mark.asyncio
    async def test_duplicate_application_conflicts(self, client: AsyncClient, hod_headers, program):
        await client.post('/api/v1/admissions', json=_application_payload(program), headers=hod_headers)

        response = await client.post('/api/v1/admissions', json=_application_payload(program), headers=hod_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_students_cannot_list_applications(self, client: AsyncClient, student_headers):
        response = await client.get('/api/v1/admissions', headers=student_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_statistics(self, client: AsyncClient, hod_headers, program):
        await client.post('/api/v1/admissions', json=_application_payload(program), headers=hod_headers)

        response = await client.get('/api/v1/admissions/statistics', headers=hod_headers)

        assert response.status_code == 200
        assert response.json()['data']['by_status'] == {'pending': 1}


class TestAttendanceEndpoints:

    @pytest.fixture
    async def registered(self, db_session, student, course_class, semester):
        db_session.add(Enrollment(
            student_id=student.id, class_id=course_class.id, semester_id=semester.id,
            status=EnrollmentStatus.REGISTERED, enrolled_at=datetime.utcnow(),
        ))
        await db_session.commit()
        return student

    @pytest.mark.asyncio
    async def test_lecturer_marks_and_student_reads(
        self, client: AsyncClient, lecturer_headers, student_headers, registered, course_class
    ):
        marked = await client.post(
            '/api/v1/attendance/students',
            json={
                'class_id': course_class.id,
                'date': '2026-03-02',
                'records': [{'student_id': registered.id, 'status': 'late'}],
            },
            headers=lecturer_headers,
        )
        assert marked.status_code == 200
        assert marked.json()['data'] == {'marked': 1, 'skipped': []}

        summary = await client.get(f'/api/v1/attendance/students/{registered.id}/summary', headers=student_headers)
        assert summary.status_code == 200
        assert summary.json()['data']['percentage'] == 100

    @pytest.mark.asyncio
    async def test_student_cannot_read_other_attendance(
        self, client: AsyncClient, student_headers, make_student
    ):
        other = await make_student()

        response = await client.get(f'/api/v1/attendance/students/{other.id}', headers=student_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_students_cannot_mark(self, client: AsyncClient, student_headers, registered, course_class):
        response = await client.post(
            '/api/v1/attendance/students',
            json={
                'class_id': course_class.id,
                'date': '2026-03-02',
                'records': [{'student_id': registered.id, 'status': 'present'}],
            },
            headers=student_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_employee_checks_in_once(self, client: AsyncClient, make_user, make_employee):
        user = await make_user(UserRole.EMPLOYEE)
        await make_employee(user)

        first = await client.post('/api/v1/attendance/employees/check-in', headers=_bearer(user))
        second = await client.post('/api/v1/attendance/employees/check-in', headers=_bearer(user))

        assert first.status_code == 200
        assert first.json()['data']['date'] == date.today().isoformat()
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_check_out_before_check_in(self, client: AsyncClient, make_user, make_employee):
        user = await make_user(UserRole.EMPLOYEE)
        await make_employee(user)

        response = await client.post('/api/v1/attendance/employees/check-out', headers=_bearer(user))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_hr_marks_holiday(self, client: AsyncClient, hr_headers, employee):
        response = await client.post(
            '/api/v1/attendance/employees/holiday', json={'date': '2026-03-08'}, headers=hr_headers
        )

        assert response.status_code == 200
        assert response.json()['data']['employees_marked'] == 1
