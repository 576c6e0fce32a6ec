"""
Unit Tests for Authentication API Endpoints
"""
import pytest
from httpx import AsyncClient
from faker import Faker

from campus_erp.core.security import create_refresh_token
from campus_erp.models import UserRole

fake = Faker()


class TestLogin:
    """Test login endpoint"""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, make_user):
        """Valid credentials return a token pair and the user"""
        user = await make_user(UserRole.LIBRARIAN, password='correct-horse-1')

        response = await client.post(
            '/api/v1/auth/login', json={'email': user.email, 'password': 'correct-horse-1'}
        )

        assert response.status_code == 200
        data = response.json()
        assert data['token_type'] == 'bearer'
        assert data['access_token'] and data['refresh_token']
        assert data['user']['role'] == 'librarian'
        assert 'hashed_password' not in data['user']

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, student_user):
        """Wrong password is a 401 in the standard detail format"""
        response = await client.post(
            '/api/v1/auth/login', json={'email': student_user.email, 'password': 'wrong-password'}
        )

        assert response.status_code == 401
        assert response.json()['detail'] == 'Incorrect email or password'

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client: AsyncClient):
        response = await client.post(
            '/api/v1/auth/login', json={'email': fake.email(), 'password': 'whatever123'}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_account(self, client: AsyncClient, make_user):
        """Inactive accounts are refused with 403"""
        user = await make_user(UserRole.STUDENT, is_active=False)

        response = await client.post(
            '/api/v1/auth/login', json={'email': user.email, 'password': 'testpassword123'}
        )

        assert response.status_code == 403


class TestTokens:
    """Test /me and token refresh"""

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, hr_user, hr_headers):
        response = await client.get('/api/v1/auth/me', headers=hr_headers)

        assert response.status_code == 200
        assert response.json()['email'] == hr_user.email
        assert response.json()['role'] == 'hr'

    @pytest.mark.asyncio
    async def test_me_without_token(self, client: AsyncClient):
        """Missing bearer token is rejected"""
        response = await client.get('/api/v1/auth/me')

        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get('/api/v1/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_token_cannot_be_used_as_access(self, client: AsyncClient, student_user):
        """A refresh token does not authenticate API calls"""
        token = create_refresh_token({'sub': str(student_user.id)})

        response = await client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh(self, client: AsyncClient, student_user):
        token = create_refresh_token({'sub': str(student_user.id)})

        response = await client.post('/api/v1/auth/refresh', json={'refresh_token': token})

        assert response.status_code == 200
        assert response.json()['access_token']


class TestRegister:
    """Test admin-only account creation"""

    @pytest.mark.asyncio
    async def test_admin_registers_user(self, client: AsyncClient, admin_headers):
        user_data = {
            'email': fake.email(),
            'password': 'securePassword123!',
            'full_name': fake.name(),
            'role': 'finance',
        }

        response = await client.post('/api/v1/auth/register', json=user_data, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data['email'] == user_data['email']
        assert data['role'] == 'finance'
        assert 'hashed_password' not in data

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client: AsyncClient, admin_headers, student_user):
        """Registering an existing email is a conflict"""
        user_data = {
            'email': student_user.email,
            'password': 'securePassword123!',
            'full_name': fake.name(),
        }

        response = await client.post('/api/v1/auth/register', json=user_data, headers=admin_headers)

        assert response.status_code == 409
        assert 'already registered' in response.json()['detail'].lower()

    @pytest.mark.asyncio
    async def test_non_admin_cannot_register(self, client: AsyncClient, hr_headers):
        user_data = {
            'email': fake.email(),
            'password': 'securePassword123!',
            'full_name': fake.name(),
        }

        response = await client.post('/api/v1/auth/register', json=user_data, headers=hr_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client: AsyncClient, admin_headers):
        """Validation errors use the shared envelope"""
        user_data = {'email': fake.email(), 'password': 'short', 'full_name': fake.name()}

        response = await client.post('/api/v1/auth/register', json=user_data, headers=admin_headers)

        assert response.status_code == 422
        body = response.json()
        assert body['success'] is False
        assert body['code'] == 'VALIDATION_ERROR'
        assert 'body.password' in [e['field'] for e in body['errors']]
