"""
Unit Tests for Library API Endpoints
"""
import pytest
from httpx import AsyncClient

from campus_erp.models import BookCategory


@pytest.fixture
async def category(db_session):
    category = BookCategory(name='Fiction')
    db_session.add(category)
    await db_session.commit()
    return category


def _book_payload(category, **overrides):
    payload = {
        'isbn': '978-0-306-40615-7',
        'title': 'Things Fall Apart',
        'author': 'Chinua Achebe',
        'category_id': category.id,
        'total_copies': 2,
    }
    payload.update(overrides)
    return payload


class TestCatalogueEndpoints:
    """Book creation and role guards"""

    @pytest.mark.asyncio
    async def test_librarian_creates_book(self, client: AsyncClient, librarian_headers, category):
        response = await client.post(
            '/api/v1/library/books', json=_book_payload(category), headers=librarian_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body['success'] is True
        assert body['message'] == 'Book created successfully'
        assert body['data']['isbn'] == '9780306406157'
        assert body['data']['available_copies'] == 2
        assert len(body['data']['copies']) == 2

    @pytest.mark.asyncio
    async def test_student_cannot_create_book(self, client: AsyncClient, student_headers, category):
        """Catalogue writes need the librarian role"""
        response = await client.post(
            '/api/v1/library/books', json=_book_payload(category), headers=student_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_passes_role_guard(self, client: AsyncClient, admin_headers, category):
        response = await client.post(
            '/api/v1/library/books', json=_book_payload(category), headers=admin_headers
        )

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_duplicate_isbn_uses_error_envelope(self, client: AsyncClient, librarian_headers, category):
        await client.post('/api/v1/library/books', json=_book_payload(category), headers=librarian_headers)

        response = await client.post(
            '/api/v1/library/books', json=_book_payload(category, isbn='9780306406157'), headers=librarian_headers
        )

        assert response.status_code == 409
        body = response.json()
        assert body['success'] is False
        assert body['code'] == 'CONFLICT'

    @pytest.mark.asyncio
    async def test_invalid_isbn_is_validation_error(self, client: AsyncClient, librarian_headers, category):
        response = await client.post(
            '/api/v1/library/books', json=_book_payload(category, isbn='12345abcde'), headers=librarian_headers
        )

        assert response.status_code == 422
        body = response.json()
        assert body['message'] == 'Validation failed'
        assert 'body.isbn' in [e['field'] for e in body['errors']]

    @pytest.mark.asyncio
    async def test_list_books_is_paginated(self, client: AsyncClient, librarian_headers, student_headers, category):
        await client.post('/api/v1/library/books', json=_book_payload(category), headers=librarian_headers)

        response = await client.get('/api/v1/library/books', params={'search': 'achebe'}, headers=student_headers)

        assert response.status_code == 200
        body = response.json()
        assert len(body['data']) == 1
        assert body['pagination']['total'] == 1

    @pytest.mark.asyncio
    async def test_unknown_book_is_404(self, client: AsyncClient, student_headers):
        response = await client.get('/api/v1/library/books/does-not-exist', headers=student_headers)

        assert response.status_code == 404
        assert response.json()['code'] == 'NOT_FOUND'


class TestCirculationEndpoints:
    """Issue and return over HTTP"""

    @pytest.mark.asyncio
    async def test_issue_and_return(
        self, client: AsyncClient, librarian_headers, student_user, student_headers, category
    ):
        created = await client.post(
            '/api/v1/library/books', json=_book_payload(category, total_copies=1), headers=librarian_headers
        )
        book = created.json()['data']
        barcode = book['copies'][0]['barcode']

        issued = await client.post(
            '/api/v1/library/borrowings/issue',
            json={'barcode': barcode, 'borrower_id': student_user.id},
            headers=librarian_headers,
        )
        assert issued.status_code == 201
        borrowing = issued.json()['data']
        assert borrowing['status'] == 'active'

        detail = await client.get(f"/api/v1/library/books/{book['id']}", headers=student_headers)
        assert detail.json()['data']['status'] == 'out_of_stock'

        returned = await client.post(
            f"/api/v1/library/borrowings/{borrowing['id']}/return", json={}, headers=librarian_headers
        )
        assert returned.status_code == 200
        assert returned.json()['data']['status'] == 'returned'
        assert returned.json()['data']['late_fee'] == 0.0

    @pytest.mark.asyncio
    async def test_issue_needs_copy_reference(self, client: AsyncClient, librarian_headers, student_user):
        response = await client.post(
            '/api/v1/library/borrowings/issue', json={'borrower_id': student_user.id}, headers=librarian_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_student_sees_only_own_eligibility(self, client: AsyncClient, student_headers, student_user, make_user):
        other = await make_user()

        own = await client.get(f'/api/v1/library/members/{student_user.id}/can-borrow', headers=student_headers)
        foreign = await client.get(f'/api/v1/library/members/{other.id}/can-borrow', headers=student_headers)

        assert own.status_code == 200
        assert own.json()['data']['can_borrow'] is True
        assert foreign.status_code == 403
