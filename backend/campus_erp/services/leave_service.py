"""
Leave Service - leave types, balances and requests

Working week runs Sunday to Thursday; Friday and Saturday are not
counted as leave days.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import datetime, date, timedelta
from typing import Optional, List, Dict, Any
import calendar
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError, ForbiddenError
from campus_erp.models.hr import LeaveType, LeaveBalance, LeaveRequest, LeaveStatus
from campus_erp.models.people import Employee
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.hr import LeaveTypeCreate, LeaveTypeUpdate, LeaveRequestCreate
from campus_erp.services.audit_service import audit_service
from campus_erp.services.employee_service import employee_service
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

WEEKEND_DAYS = (4, 5)  # Friday, Saturday
OPEN_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


def calculate_business_days(start: date, end: date) -> int:
    """Inclusive count of working days between two dates"""
    if end < start:
        return 0
    days = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND_DAYS:
            days += 1
        current += timedelta(days=1)
    return days


class LeaveService:
    """Service for employee leave"""

    # ==================== LEAVE TYPES ====================

    async def _ensure_type_name_free(self, db: AsyncSession, name: str, exclude_id: Optional[str] = None):
        query = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
        if exclude_id:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise ConflictError(f"Leave type '{name}' already exists")

    async def create_type(self, db: AsyncSession, data: LeaveTypeCreate, user_id: Optional[str] = None) -> LeaveType:
        await self._ensure_type_name_free(db, data.name)
        leave_type = LeaveType(**data.model_dump())
        async with atomic(db):
            db.add(leave_type)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "leave_type", leave_type.id, user_id, new_values=data.model_dump(),
            )
        return leave_type

    async def list_types(self, db: AsyncSession, active_only: bool = False) -> List[LeaveType]:
        query = select(LeaveType)
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))
        result = await db.execute(query.order_by(LeaveType.name))
        return list(result.scalars().all())

    async def get_type(self, db: AsyncSession, leave_type_id: str) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if not leave_type:
            raise NotFoundError("Leave type not found")
        return leave_type

    async def update_type(
        self, db: AsyncSession, leave_type_id: str, data: LeaveTypeUpdate, user_id: Optional[str] = None
    ) -> LeaveType:
        leave_type = await self.get_type(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            await self._ensure_type_name_free(db, changes["name"], exclude_id=leave_type.id)
        async with atomic(db):
            for field, value in changes.items():
                setattr(leave_type, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "leave_type", leave_type.id, user_id, new_values=changes,
            )
        return leave_type

    async def delete_type(self, db: AsyncSession, leave_type_id: str, user_id: Optional[str] = None) -> None:
        leave_type = await self.get_type(db, leave_type_id)
        in_use = await db.scalar(
            select(func.count(LeaveRequest.id)).where(LeaveRequest.leave_type_id == leave_type.id)
        )
        async with atomic(db):
            if in_use:
                leave_type.is_active = False
            else:
                await db.delete(leave_type)
            await audit_service.log(db, AuditAction.DELETE, "leave_type", leave_type_id, user_id)

    # ==================== BALANCES ====================

    async def _get_balance(
        self, db: AsyncSession, employee_id: str, leave_type_id: str, year: int
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def allocate(
        self,
        db: AsyncSession,
        employee_id: str,
        leave_type_id: str,
        year: int,
        days: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> LeaveBalance:
        await employee_service.get(db, employee_id)
        leave_type = await self.get_type(db, leave_type_id)
        allocated = leave_type.days_per_year if days is None else days

        balance = await self._get_balance(db, employee_id, leave_type_id, year)
        async with atomic(db):
            if balance:
                balance.allocated = allocated
            else:
                balance = LeaveBalance(
                    employee_id=employee_id, leave_type_id=leave_type_id, year=year,
                    allocated=allocated, used=0, pending=0, carried=0,
                )
                db.add(balance)
            await db.flush()
            await audit_service.log(
                db, AuditAction.UPDATE, "leave_balance", balance.id, user_id,
                new_values={"employee_id": employee_id, "leave_type_id": leave_type_id,
                            "year": year, "allocated": allocated},
            )
        return balance

    async def get_employee_balances(self, db: AsyncSession, employee_id: str, year: int) -> List[LeaveBalance]:
        await employee_service.get(db, employee_id)
        result = await db.execute(
            select(LeaveBalance).where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
        )
        return list(result.scalars().all())

    async def deduct(
        self, db: AsyncSession, employee_id: str, leave_type_id: str, year: int, days: int
    ) -> LeaveBalance:
        balance = await self._get_balance(db, employee_id, leave_type_id, year)
        if not balance:
            raise BadRequestError("No leave balance allocated for this year")
        if balance.available < days:
            raise BadRequestError(f"Insufficient leave balance ({balance.available} days available)")
        async with atomic(db):
            balance.used += days
        return balance

    async def restore(
        self, db: AsyncSession, employee_id: str, leave_type_id: str, year: int, days: int
    ) -> LeaveBalance:
        balance = await self._get_balance(db, employee_id, leave_type_id, year)
        if not balance:
            raise NotFoundError("Leave balance not found")
        async with atomic(db):
            balance.used = max(0, balance.used - days)
        return balance

    async def carry_forward(self, db: AsyncSession, employee_id: str, from_year: int) -> List[LeaveBalance]:
        """Move unused days of carry-forward types into next year's balances"""
        result = await db.execute(
            select(LeaveBalance, LeaveType)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == from_year,
                LeaveType.carry_forward.is_(True),
            )
        )
        rows = result.all()

        updated = []
        async with atomic(db):
            for balance, leave_type in rows:
                days = min(max(0, balance.available), leave_type.max_carry_days)
                if days <= 0:
                    continue
                target = await self._get_balance(db, employee_id, leave_type.id, from_year + 1)
                if target is None:
                    target = LeaveBalance(
                        employee_id=employee_id, leave_type_id=leave_type.id, year=from_year + 1,
                        allocated=leave_type.days_per_year, used=0, pending=0, carried=0,
                    )
                    db.add(target)
                target.carried = days
                updated.append(target)
        return updated

    # ==================== REQUESTS ====================

    async def submit(self, db: AsyncSession, employee_id: str, data: LeaveRequestCreate) -> LeaveRequest:
        if data.start_date > data.end_date:
            raise BadRequestError("Start date must be on or before end date")

        employee = await employee_service.get(db, employee_id)
        leave_type = await db.get(LeaveType, data.leave_type_id)
        if not leave_type or not leave_type.is_active:
            raise BadRequestError("Invalid or inactive leave type")
        if leave_type.requires_document and not data.document_url:
            raise BadRequestError(f"{leave_type.name} requires a supporting document")

        overlap = await db.scalar(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status.in_(OPEN_LEAVE_STATUSES),
                and_(LeaveRequest.start_date <= data.end_date, LeaveRequest.end_date >= data.start_date),
            )
        )
        if overlap:
            raise ConflictError("Leave request overlaps an existing request")

        total_days = calculate_business_days(data.start_date, data.end_date)
        if total_days <= 0:
            raise BadRequestError("Leave period contains no working days")

        balance = await self._get_balance(db, employee.id, leave_type.id, data.start_date.year)
        if not balance or balance.available < total_days:
            available = balance.available if balance else 0
            raise BadRequestError(f"Insufficient leave balance ({available} days available, {total_days} requested)")

        request = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            reason=data.reason,
            document_url=data.document_url,
            status=LeaveStatus.PENDING,
        )
        async with atomic(db):
            db.add(request)
            balance.pending += total_days
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "leave_request", request.id, employee.user_id,
                new_values={"employee_id": employee.id, "leave_type_id": leave_type.id, "total_days": total_days},
            )

        logger.info(f"Leave request {request.id} submitted by {employee.employee_no} for {total_days} days")
        return request

    async def get(self, db: AsyncSession, request_id: str) -> LeaveRequest:
        request = await db.get(LeaveRequest, request_id)
        if not request:
            raise NotFoundError("Leave request not found")
        return request

    async def _request_balance(self, db: AsyncSession, request: LeaveRequest) -> Optional[LeaveBalance]:
        return await self._get_balance(db, request.employee_id, request.leave_type_id, request.start_date.year)

    async def approve(
        self, db: AsyncSession, request_id: str, user_id: Optional[str] = None, remarks: Optional[str] = None
    ) -> LeaveRequest:
        request = await self.get(db, request_id)
        if request.status != LeaveStatus.PENDING:
            raise BadRequestError(f"Only pending requests can be approved (status: {request.status.value})")
        balance = await self._request_balance(db, request)

        async with atomic(db):
            request.status = LeaveStatus.APPROVED
            request.approved_by_id = user_id
            request.approved_at = datetime.utcnow()
            if remarks:
                request.remarks = remarks
            if balance:
                balance.pending = max(0, balance.pending - request.total_days)
                balance.used += request.total_days
            await audit_service.log(
                db, AuditAction.UPDATE, "leave_request", request.id, user_id,
                old_values={"status": LeaveStatus.PENDING}, new_values={"status": LeaveStatus.APPROVED},
            )
        return request

    async def reject(
        self, db: AsyncSession, request_id: str, remarks: str, user_id: Optional[str] = None
    ) -> LeaveRequest:
        if not remarks or not remarks.strip():
            raise BadRequestError("Remarks are required when rejecting a request")
        request = await self.get(db, request_id)
        if request.status != LeaveStatus.PENDING:
            raise BadRequestError(f"Only pending requests can be rejected (status: {request.status.value})")
        balance = await self._request_balance(db, request)

        async with atomic(db):
            request.status = LeaveStatus.REJECTED
            request.approved_by_id = user_id
            request.remarks = remarks
            if balance:
                balance.pending = max(0, balance.pending - request.total_days)
            await audit_service.log(
                db, AuditAction.UPDATE, "leave_request", request.id, user_id,
                old_values={"status": LeaveStatus.PENDING},
                new_values={"status": LeaveStatus.REJECTED, "remarks": remarks},
            )
        return request

    async def cancel(self, db: AsyncSession, request_id: str, employee_id: str) -> LeaveRequest:
        request = await self.get(db, request_id)
        if request.employee_id != employee_id:
            raise ForbiddenError("You can only cancel your own leave requests")
        if request.status not in OPEN_LEAVE_STATUSES:
            raise BadRequestError(f"Cannot cancel a {request.status.value} request")
        balance = await self._request_balance(db, request)
        previous = request.status

        async with atomic(db):
            request.status = LeaveStatus.CANCELLED
            if balance:
                if previous == LeaveStatus.PENDING:
                    balance.pending = max(0, balance.pending - request.total_days)
                else:
                    balance.used = max(0, balance.used - request.total_days)
            await audit_service.log(
                db, AuditAction.UPDATE, "leave_request", request.id, None,
                old_values={"status": previous}, new_values={"status": LeaveStatus.CANCELLED},
            )
        return request

    async def list(
        self,
        db: AsyncSession,
        employee_id: Optional[str] = None,
        status: Optional[LeaveStatus] = None,
        leave_type_id: Optional[str] = None,
        department_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(LeaveRequest)
        if department_id:
            query = query.join(Employee, Employee.id == LeaveRequest.employee_id).where(
                Employee.department_id == department_id
            )
        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        if leave_type_id:
            query = query.where(LeaveRequest.leave_type_id == leave_type_id)
        return await paginate(db, query.order_by(LeaveRequest.created_at.desc()), page, limit)

    async def get_calendar(
        self, db: AsyncSession, month: int, year: int, department_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Approved leave overlapping the given month"""
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        query = (
            select(LeaveRequest, Employee.full_name)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(
                LeaveRequest.status == LeaveStatus.APPROVED,
                LeaveRequest.start_date <= last,
                LeaveRequest.end_date >= first,
            )
        )
        if department_id:
            query = query.where(Employee.department_id == department_id)
        rows = (await db.execute(query.order_by(LeaveRequest.start_date))).all()
        return [
            {
                "request_id": request.id,
                "employee_id": request.employee_id,
                "employee_name": name,
                "leave_type_id": request.leave_type_id,
                "start_date": request.start_date,
                "end_date": request.end_date,
                "total_days": request.total_days,
            }
            for request, name in rows
        ]


leave_service = LeaveService()
