"""
Unit Tests for Department, Leave and Payroll API Endpoints
"""
import pytest
from httpx import AsyncClient

from campus_erp.core.security import create_access_token
from campus_erp.models import UserRole
from campus_erp.services.payroll_service import salary_component_service


def _bearer(user):
    token = create_access_token({'sub': user.id, 'email': user.email, 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def staff_member(make_user, make_employee):
    user = await make_user(UserRole.EMPLOYEE)
    return user, await make_employee(user)


class TestDepartmentEndpoints:

    @pytest.mark.asyncio
    async def test_hod_creates_department(self, client: AsyncClient, hod_headers, faculty):
        response = await client.post(
            '/api/v1/departments',
            json={'name': 'Mathematics', 'code': ' math ', 'faculty_id': faculty.id},
            headers=hod_headers,
        )

        assert response.status_code == 201
        assert response.json()['data']['code'] == 'MATH'

    @pytest.mark.asyncio
    async def test_lecturer_cannot_create_department(self, client: AsyncClient, lecturer_headers, faculty):
        response = await client.post(
            '/api/v1/departments',
            json={'name': 'Mathematics', 'code': 'MATH', 'faculty_id': faculty.id},
            headers=lecturer_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_with_programs_is_bad_request(self, client: AsyncClient, hod_headers, department, program):
        response = await client.delete(f'/api/v1/departments/{department.id}', headers=hod_headers)

        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'


class TestLeaveEndpoints:
    """Leave workflow across HR and employee accounts"""

    @pytest.mark.asyncio
    async def test_request_and_approve(self, client: AsyncClient, hr_headers, staff_member):
        user, employee = staff_member

        leave_type = await client.post(
            '/api/v1/leave/types', json={'name': 'Annual Leave', 'days_per_year': 20}, headers=hr_headers
        )
        assert leave_type.status_code == 201
        leave_type_id = leave_type.json()['data']['id']

        allocated = await client.post(
            '/api/v1/leave/balances/allocate',
            json={'employee_id': employee.id, 'leave_type_id': leave_type_id, 'year': 2026},
            headers=hr_headers,
        )
        assert allocated.status_code == 201
        assert allocated.json()['data']['available'] == 20

        submitted = await client.post(
            '/api/v1/leave/requests',
            json={
                'leave_type_id': leave_type_id,
                'start_date': '2026-03-01',
                'end_date': '2026-03-07',
                'reason': 'Family visit',
            },
            headers=_bearer(user),
        )
        assert submitted.status_code == 201
        request = submitted.json()['data']
        assert request['total_days'] == 5
        assert request['status'] == 'pending'

        approved = await client.post(
            f"/api/v1/leave/requests/{request['id']}/approve", json={}, headers=hr_headers
        )
        assert approved.status_code == 200
        assert approved.json()['data']['status'] == 'approved'

        balances = await client.get(
            f'/api/v1/leave/balances/{employee.id}', params={'year': 2026}, headers=_bearer(user)
        )
        assert balances.json()['data'][0]['used'] == 5

    @pytest.mark.asyncio
    async def test_employee_cannot_read_other_balances(self, client: AsyncClient, staff_member, make_employee):
        user, _ = staff_member
        other = await make_employee()

        response = await client.get(f'/api/v1/leave/balances/{other.id}', headers=_bearer(user))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_account_without_employee_record(self, client: AsyncClient, student_headers):
        response = await client.post(
            '/api/v1/leave/requests',
            json={
                'leave_type_id': 'any',
                'start_date': '2026-03-01',
                'end_date': '2026-03-02',
                'reason': 'Trip',
            },
            headers=student_headers,
        )

        assert response.status_code == 403


class TestPayrollEndpoints:

    @pytest.mark.asyncio
    async def test_calculate_preview(self, client: AsyncClient, db_session, hr_headers, employee):
        await salary_component_service.seed_defaults(db_session)

        response = await client.get(f'/api/v1/payroll/calculate/{employee.id}', headers=hr_headers)

        assert response.status_code == 200
        data = response.json()['data']
        assert data['gross_salary'] == 1200.0
        assert data['total_deductions'] == 80.0
        assert data['net_salary'] == 1120.0

    @pytest.mark.asyncio
    async def test_process_single_employee(self, client: AsyncClient, db_session, hr_headers, employee):
        await salary_component_service.seed_defaults(db_session)

        response = await client.post(
            '/api/v1/payroll/process',
            json={'month': 5, 'year': 2026, 'employee_id': employee.id},
            headers=hr_headers,
        )

        assert response.status_code == 200
        assert response.json()['data']['processed'] == 1

    @pytest.mark.asyncio
    async def test_finance_cannot_process_payroll(self, client: AsyncClient, finance_headers):
        response = await client.post(
            '/api/v1/payroll/process', json={'month': 5, 'year': 2026}, headers=finance_headers
        )

        assert response.status_code == 403
