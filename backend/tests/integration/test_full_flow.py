"""
Integration Tests - Complete student lifecycle over the HTTP API

Enrollment -> grading -> transcript GPA -> invoicing -> payment,
plus holds blocking registration.
"""
import pytest
from datetime import date, timedelta
from httpx import AsyncClient

from campus_erp.models import HoldType
from campus_erp.services.grading_service import grade_scale_service
from campus_erp.core.security import create_access_token


class TestPlatformEndpoints:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    @pytest.mark.asyncio
    async def test_api_health(self, client: AsyncClient):
        response = await client.get('/api/v1/health')

        assert response.status_code == 200
        assert response.json()['service'] == 'campus-erp'

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get('/')

        assert response.status_code == 200
        assert response.json()['docs'] == '/docs'

    @pytest.mark.asyncio
    async def test_security_headers(self, client: AsyncClient):
        response = await client.get('/health')

        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert 'X-Request-ID' in response.headers


class TestStudentLifecycle:
    """A student enrolls, is graded, invoiced and pays"""

    @pytest.mark.asyncio
    async def test_full_flow(
        self,
        client: AsyncClient,
        db_session,
        student,
        student_headers,
        lecturer_headers,
        finance_headers,
        course_class,
        semester,
        registration_open,
    ):
        await grade_scale_service.seed_default(db_session)

        # 1. Student registers for the class
        response = await client.post(
            '/api/v1/enrollments',
            json={'student_id': student.id, 'class_id': course_class.id},
            headers=student_headers,
        )
        assert response.status_code == 201, response.text
        enrollment = response.json()['data']
        assert enrollment['status'] == 'registered'

        # 2. Lecturer sets up a single component and grades it
        response = await client.post(
            f'/api/v1/grading/classes/{course_class.id}/components',
            json={'name': 'Final Exam', 'type': 'final', 'weight': 100},
            headers=lecturer_headers,
        )
        assert response.status_code == 201, response.text
        component = response.json()['data']

        response = await client.post(
            f"/api/v1/grading/components/{component['id']}/grades",
            json={'grades': [{'enrollment_id': enrollment['id'], 'score': 88}]},
            headers=lecturer_headers,
        )
        assert response.status_code == 200, response.text

        # 3. Grades are finalized and the class completed
        response = await client.post(
            f'/api/v1/grading/classes/{course_class.id}/finalize', headers=lecturer_headers
        )
        assert response.json()['data'] == {'finalized': 1}

        response = await client.post(
            f'/api/v1/grading/classes/{course_class.id}/complete', headers=lecturer_headers
        )
        assert response.json()['data'] == {'completed': 1, 'failed': 0}

        response = await client.get(f'/api/v1/grading/students/{student.id}/gpa', headers=student_headers)
        assert response.status_code == 200
        assert response.json()['data']['cgpa'] == 3.7

        # 4. Finance invoices the semester
        response = await client.post(
            '/api/v1/finance/invoices',
            json={
                'student_id': student.id,
                'semester_id': semester.id,
                'amount': '1200.00',
                'due_date': (date.today() + timedelta(days=30)).isoformat(),
            },
            headers=finance_headers,
        )
        assert response.status_code == 201, response.text
        invoice = response.json()['data']
        assert invoice['status'] == 'pending'
        assert invoice['balance'] == 1200.0

        # 5. Payment settles the invoice
        response = await client.post(
            '/api/v1/finance/payments',
            json={
                'student_id': student.id,
                'invoice_id': invoice['id'],
                'amount': '1200.00',
                'method': 'bank_transfer',
                'reference': 'BANK-778',
            },
            headers=finance_headers,
        )
        assert response.status_code == 201, response.text
        assert response.json()['data']['receipt_no'].startswith('RCP-')

        response = await client.get(f"/api/v1/finance/invoices/{invoice['id']}", headers=student_headers)
        assert response.status_code == 200
        assert response.json()['data']['status'] == 'paid'
        assert response.json()['data']['balance'] == 0.0


class TestAccessRules:
    """Cross-module authorization"""

    @pytest.mark.asyncio
    async def test_hold_blocks_registration_over_http(
        self, client: AsyncClient, student, student_headers, finance_headers, course_class, registration_open
    ):
        response = await client.post(
            '/api/v1/holds',
            json={'student_id': student.id, 'type': HoldType.FINANCIAL.value, 'reason': 'Unpaid balance'},
            headers=finance_headers,
        )
        assert response.status_code == 201, response.text

        response = await client.post(
            '/api/v1/enrollments',
            json={'student_id': student.id, 'class_id': course_class.id},
            headers=student_headers,
        )

        assert response.status_code == 403
        body = response.json()
        assert body['success'] is False
        assert body['code'] == 'FORBIDDEN'

    @pytest.mark.asyncio
    async def test_student_cannot_enroll_someone_else(
        self, client: AsyncClient, make_student, student_headers, course_class, registration_open
    ):
        other = await make_student()

        response = await client.post(
            '/api/v1/enrollments',
            json={'student_id': other.id, 'class_id': course_class.id},
            headers=student_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_student_cannot_view_other_invoices(
        self, client: AsyncClient, make_student, make_user, student
    ):
        other_user = await make_user()
        await make_student(other_user)

        token = create_access_token({'sub': other_user.id, 'role': other_user.role.value})

        response = await client.get(
            f'/api/v1/finance/invoices/student/{student.id}', headers={'Authorization': f'Bearer {token}'}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_audit_log_is_admin_only(self, client: AsyncClient, admin_headers, hr_headers):
        assert (await client.get('/api/v1/audit-logs', headers=hr_headers)).status_code == 403

        response = await client.get('/api/v1/audit-logs', headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['success'] is True
