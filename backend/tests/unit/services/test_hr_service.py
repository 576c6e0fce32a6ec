"""
Unit Tests for leave and payroll
"""
import pytest
from datetime import date
from decimal import Decimal

from campus_erp.core.exceptions import BadRequestError, ConflictError, ForbiddenError
from campus_erp.models import CalculationType, ComponentType, LeaveStatus, PayrollStatus
from campus_erp.schemas.hr import LeaveRequestCreate, LeaveTypeCreate, SalaryComponentCreate
from campus_erp.services.leave_service import calculate_business_days, leave_service
from campus_erp.services.payroll_service import (
    component_amount,
    payroll_service,
    salary_component_service,
)

# Sunday 1 March 2026 .. Saturday 7 March 2026
WEEK_START = date(2026, 3, 1)
WEEK_END = date(2026, 3, 7)


@pytest.fixture
async def annual_leave(db_session):
    return await leave_service.create_type(db_session, LeaveTypeCreate(name='Annual Leave', days_per_year=10))


@pytest.fixture
async def allocated(db_session, employee, annual_leave):
    return await leave_service.allocate(db_session, employee.id, annual_leave.id, 2026)


def _request(leave_type, start=WEEK_START, end=WEEK_END):
    return LeaveRequestCreate(leave_type_id=leave_type.id, start_date=start, end_date=end, reason='Family visit')


class TestBusinessDays:
    """Working days exclude Friday and Saturday"""

    def test_full_week(self):
        assert calculate_business_days(WEEK_START, WEEK_END) == 5

    def test_single_day_is_inclusive(self):
        assert calculate_business_days(WEEK_START, WEEK_START) == 1

    def test_weekend_only(self):
        assert calculate_business_days(date(2026, 3, 6), date(2026, 3, 7)) == 0

    def test_reversed_range(self):
        assert calculate_business_days(WEEK_END, WEEK_START) == 0


class TestLeaveBalances:

    @pytest.mark.asyncio
    async def test_deduct_and_restore(self, db_session, employee, annual_leave, allocated):
        balance = await leave_service.deduct(db_session, employee.id, annual_leave.id, 2026, 4)
        assert (balance.used, balance.available) == (4, 6)

        with pytest.raises(BadRequestError):
            await leave_service.deduct(db_session, employee.id, annual_leave.id, 2026, 7)

        balance = await leave_service.restore(db_session, employee.id, annual_leave.id, 2026, 10)
        assert balance.used == 0

    @pytest.mark.asyncio
    async def test_deduct_without_allocation(self, db_session, employee, annual_leave):
        with pytest.raises(BadRequestError):
            await leave_service.deduct(db_session, employee.id, annual_leave.id, 2026, 1)


class TestCarryForward:
    """Unused days move into next year up to the type's cap"""

    @pytest.fixture
    async def study_leave(self, db_session):
        return await leave_service.create_type(
            db_session,
            LeaveTypeCreate(name='Study Leave', days_per_year=10, carry_forward=True, max_carry_days=5),
        )

    @pytest.mark.asyncio
    async def test_carry_is_capped(self, db_session, employee, study_leave, annual_leave, allocated):
        await leave_service.allocate(db_session, employee.id, study_leave.id, 2026)
        await leave_service.deduct(db_session, employee.id, study_leave.id, 2026, 2)

        carried = await leave_service.carry_forward(db_session, employee.id, 2026)

        # Annual leave does not carry forward
        assert len(carried) == 1
        target = carried[0]
        assert (target.leave_type_id, target.year) == (study_leave.id, 2027)
        assert (target.allocated, target.carried, target.available) == (10, 5, 15)

    @pytest.mark.asyncio
    async def test_carry_below_cap(self, db_session, employee, study_leave):
        await leave_service.allocate(db_session, employee.id, study_leave.id, 2026)
        await leave_service.deduct(db_session, employee.id, study_leave.id, 2026, 7)
        existing = await leave_service.allocate(db_session, employee.id, study_leave.id, 2027, days=12)

        carried = await leave_service.carry_forward(db_session, employee.id, 2026)

        assert [balance.id for balance in carried] == [existing.id]
        assert (existing.allocated, existing.carried) == (12, 3)

    @pytest.mark.asyncio
    async def test_fully_used_balance_carries_nothing(self, db_session, employee, study_leave):
        await leave_service.allocate(db_session, employee.id, study_leave.id, 2026)
        await leave_service.deduct(db_session, employee.id, study_leave.id, 2026, 10)

        assert await leave_service.carry_forward(db_session, employee.id, 2026) == []


class TestLeaveRequests:
    """Balance transitions through the request workflow"""

    @pytest.mark.asyncio
    async def test_submit_reserves_pending_days(self, db_session, employee, annual_leave, allocated):
        request = await leave_service.submit(db_session, employee.id, _request(annual_leave))

        assert request.status == LeaveStatus.PENDING
        assert request.total_days == 5
        assert (allocated.pending, allocated.used, allocated.available) == (5, 0, 5)

    @pytest.mark.asyncio
    async def test_approve_moves_pending_to_used(self, db_session, employee, annual_leave, allocated, hr_user):
        request = await leave_service.submit(db_session, employee.id, _request(annual_leave))

        await leave_service.approve(db_session, request.id, user_id=hr_user.id)

        assert (allocated.pending, allocated.used, allocated.available) == (0, 5, 5)
        with pytest.raises(BadRequestError):
            await leave_service.approve(db_session, request.id)

    @pytest.mark.asyncio
    async def test_reject_requires_remarks_and_releases_days(self, db_session, employee, annual_leave, allocated):
        request = await leave_service.submit(db_session, employee.id, _request(annual_leave))

        with pytest.raises(BadRequestError):
            await leave_service.reject(db_session, request.id, '  ')

        rejected = await leave_service.reject(db_session, request.id, 'Exam period')
        assert rejected.status == LeaveStatus.REJECTED
        assert allocated.available == 10

    @pytest.mark.asyncio
    async def test_cancel_approved_restores_used(self, db_session, employee, annual_leave, allocated):
        request = await leave_service.submit(db_session, employee.id, _request(annual_leave))
        await leave_service.approve(db_session, request.id)

        cancelled = await leave_service.cancel(db_session, request.id, employee.id)

        assert cancelled.status == LeaveStatus.CANCELLED
        assert (allocated.pending, allocated.used) == (0, 0)

    @pytest.mark.asyncio
    async def test_cannot_cancel_someone_elses_request(
        self, db_session, employee, make_employee, annual_leave, allocated
    ):
        other = await make_employee()
        request = await leave_service.submit(db_session, employee.id, _request(annual_leave))

        with pytest.raises(ForbiddenError):
            await leave_service.cancel(db_session, request.id, other.id)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, db_session, employee, annual_leave):
        await leave_service.allocate(db_session, employee.id, annual_leave.id, 2026, days=3)

        with pytest.raises(BadRequestError, match='Insufficient leave balance'):
            await leave_service.submit(db_session, employee.id, _request(annual_leave))

    @pytest.mark.asyncio
    async def test_overlapping_request_conflicts(self, db_session, employee, annual_leave, allocated):
        await leave_service.submit(db_session, employee.id, _request(annual_leave))

        with pytest.raises(ConflictError):
            await leave_service.submit(
                db_session, employee.id, _request(annual_leave, date(2026, 3, 5), date(2026, 3, 9))
            )

    @pytest.mark.asyncio
    async def test_weekend_only_request_rejected(self, db_session, employee, annual_leave, allocated):
        with pytest.raises(BadRequestError):
            await leave_service.submit(
                db_session, employee.id, _request(annual_leave, date(2026, 3, 6), date(2026, 3, 7))
            )


class TestPayrollCalculation:
    """Gross = base + allowances, net = gross - deductions"""

    def test_percentage_component(self):
        assert component_amount(Decimal('1234.50'), CalculationType.PERCENTAGE, Decimal('10')) == Decimal('123.45')

    def test_fixed_component(self):
        assert component_amount(Decimal('1000'), CalculationType.FIXED, Decimal('75.5')) == Decimal('75.50')

    @pytest.mark.asyncio
    async def test_default_components(self, db_session, employee):
        assert await salary_component_service.seed_defaults(db_session) == 4

        result = await payroll_service.calculate_payroll(db_session, employee.id)

        # Housing 15% + transport 50; tax 5% + pension 3%
        assert result['base_salary'] == Decimal('1000.00')
        assert result['total_allowances'] == Decimal('200.00')
        assert result['total_deductions'] == Decimal('80.00')
        assert result['gross_salary'] == Decimal('1200.00')
        assert result['net_salary'] == Decimal('1120.00')
        assert len(result['items']) == 4

    @pytest.mark.asyncio
    async def test_assigned_value_overrides_default(self, db_session, employee, make_employee):
        bonus = await salary_component_service.create(
            db_session,
            SalaryComponentCreate(
                name='Research Bonus', type=ComponentType.ALLOWANCE,
                calculation_type=CalculationType.FIXED, default_value=Decimal('100'),
            ),
        )
        await salary_component_service.assign_to_employee(db_session, bonus.id, employee.id, Decimal('250'))
        unassigned = await make_employee()

        assert (await payroll_service.calculate_payroll(db_session, employee.id))['net_salary'] == Decimal('1250.00')
        assert (await payroll_service.calculate_payroll(db_session, unassigned.id))['net_salary'] == Decimal('1000.00')


class TestPayrollWorkflow:
    """processed -> approved -> paid"""

    @pytest.mark.asyncio
    async def test_process_approve_pay(self, db_session, employee, hr_user):
        await salary_component_service.seed_defaults(db_session)

        payroll = await payroll_service.process_employee_payroll(db_session, employee.id, 3, 2026, hr_user.id)
        assert payroll.status == PayrollStatus.PROCESSED
        assert payroll.net_salary == Decimal('1120.00')

        with pytest.raises(BadRequestError):
            await payroll_service.mark_as_paid(db_session, payroll.id, 'TRX-1')

        await payroll_service.approve(db_session, payroll.id, hr_user.id)
        paid = await payroll_service.mark_as_paid(db_session, payroll.id, 'TRX-1', hr_user.id)
        assert paid.status == PayrollStatus.PAID
        assert paid.payment_reference == 'TRX-1'

    @pytest.mark.asyncio
    async def test_processed_payroll_cannot_be_reprocessed_after_approval(self, db_session, employee):
        payroll = await payroll_service.process_employee_payroll(db_session, employee.id, 4, 2026)
        await payroll_service.approve(db_session, payroll.id)

        with pytest.raises(BadRequestError):
            await payroll_service.process_employee_payroll(db_session, employee.id, 4, 2026)

    @pytest.mark.asyncio
    async def test_batch_run_and_report(self, db_session, employee, make_employee):
        await make_employee(base_salary=Decimal('2000.00'))

        summary = await payroll_service.process_payroll(db_session, 5, 2026)
        report = await payroll_service.get_report(db_session, 5, 2026)

        assert summary == {'processed': 2, 'failed': 0, 'errors': []}
        assert report['employees'] == 2
        assert report['total_net'] == 3000.0
        assert report['by_status'] == {'processed': 2}
