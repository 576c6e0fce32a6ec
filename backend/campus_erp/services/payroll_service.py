"""
Payroll Service - salary components and monthly payroll

Handles:
- Salary component CRUD, per-employee assignments and default seeding
- Payroll calculation (base + allowances - deductions)
- Payroll runs and the PROCESSED -> APPROVED -> PAID workflow
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import CampusError, NotFoundError, ConflictError, BadRequestError
from campus_erp.core.types import to_money
from campus_erp.models.hr import (
    SalaryComponent,
    EmployeeSalaryComponent,
    ComponentType,
    CalculationType,
    Payroll,
    PayrollItem,
    PayrollStatus,
)
from campus_erp.models.people import Employee, EmployeeStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.hr import SalaryComponentCreate, SalaryComponentUpdate
from campus_erp.services.audit_service import audit_service
from campus_erp.services.employee_service import employee_service
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

DEFAULT_COMPONENTS = [
    {"name": "Housing Allowance", "type": ComponentType.ALLOWANCE,
     "calculation_type": CalculationType.PERCENTAGE, "default_value": Decimal("15")},
    {"name": "Transport Allowance", "type": ComponentType.ALLOWANCE,
     "calculation_type": CalculationType.FIXED, "default_value": Decimal("50")},
    {"name": "Income Tax", "type": ComponentType.DEDUCTION,
     "calculation_type": CalculationType.PERCENTAGE, "default_value": Decimal("5")},
    {"name": "Pension Contribution", "type": ComponentType.DEDUCTION,
     "calculation_type": CalculationType.PERCENTAGE, "default_value": Decimal("3")},
]


def component_amount(base_salary: Decimal, calculation_type: CalculationType, value: Decimal) -> Decimal:
    if calculation_type == CalculationType.PERCENTAGE:
        return to_money(to_money(base_salary) * Decimal(value) / Decimal(100))
    return to_money(value)


class SalaryComponentService:
    """Service for allowances and deductions"""

    async def _ensure_name_free(self, db: AsyncSession, name: str, exclude_id: Optional[str] = None):
        query = select(SalaryComponent.id).where(func.lower(SalaryComponent.name) == name.lower())
        if exclude_id:
            query = query.where(SalaryComponent.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise ConflictError(f"Salary component '{name}' already exists")

    async def create(
        self, db: AsyncSession, data: SalaryComponentCreate, user_id: Optional[str] = None
    ) -> SalaryComponent:
        await self._ensure_name_free(db, data.name)
        component = SalaryComponent(**data.model_dump())
        async with atomic(db):
            db.add(component)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "salary_component", component.id, user_id,
                new_values=data.model_dump(),
            )
        return component

    async def list(self, db: AsyncSession, active_only: bool = False) -> List[SalaryComponent]:
        query = select(SalaryComponent)
        if active_only:
            query = query.where(SalaryComponent.is_active.is_(True))
        result = await db.execute(query.order_by(SalaryComponent.type, SalaryComponent.name))
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, component_id: str) -> SalaryComponent:
        component = await db.get(SalaryComponent, component_id)
        if not component:
            raise NotFoundError("Salary component not found")
        return component

    async def update(
        self, db: AsyncSession, component_id: str, data: SalaryComponentUpdate, user_id: Optional[str] = None
    ) -> SalaryComponent:
        component = await self.get(db, component_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            await self._ensure_name_free(db, changes["name"], exclude_id=component.id)
        if (
            component.calculation_type == CalculationType.PERCENTAGE
            and changes.get("default_value") is not None
            and changes["default_value"] > 100
        ):
            raise BadRequestError("Percentage cannot exceed 100")

        async with atomic(db):
            for field, value in changes.items():
                setattr(component, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "salary_component", component.id, user_id, new_values=changes,
            )
        return component

    async def delete(self, db: AsyncSession, component_id: str, user_id: Optional[str] = None) -> None:
        """Deactivate; past payroll items keep referencing the component"""
        component = await self.get(db, component_id)
        async with atomic(db):
            component.is_active = False
            await audit_service.log(db, AuditAction.DELETE, "salary_component", component.id, user_id)

    async def assign_to_employee(
        self,
        db: AsyncSession,
        component_id: str,
        employee_id: str,
        value: Optional[Decimal] = None,
        user_id: Optional[str] = None,
    ) -> EmployeeSalaryComponent:
        await self.get(db, component_id)
        await employee_service.get(db, employee_id)

        result = await db.execute(
            select(EmployeeSalaryComponent).where(
                EmployeeSalaryComponent.employee_id == employee_id,
                EmployeeSalaryComponent.component_id == component_id,
            )
        )
        assignment = result.scalar_one_or_none()
        async with atomic(db):
            if assignment:
                assignment.value = value
            else:
                assignment = EmployeeSalaryComponent(employee_id=employee_id, component_id=component_id, value=value)
                db.add(assignment)
            await db.flush()
            await audit_service.log(
                db, AuditAction.UPDATE, "employee", employee_id, user_id,
                new_values={"component_id": component_id, "value": value},
            )
        return assignment

    async def remove_from_employee(
        self, db: AsyncSession, component_id: str, employee_id: str, user_id: Optional[str] = None
    ) -> None:
        result = await db.execute(
            select(EmployeeSalaryComponent).where(
                EmployeeSalaryComponent.employee_id == employee_id,
                EmployeeSalaryComponent.component_id == component_id,
            )
        )
        assignment = result.scalar_one_or_none()
        if not assignment:
            raise NotFoundError("Component is not assigned to this employee")

        async with atomic(db):
            await db.delete(assignment)
            await audit_service.log(
                db, AuditAction.UPDATE, "employee", employee_id, user_id,
                old_values={"component_id": component_id},
            )

    async def get_employee_components(self, db: AsyncSession, employee_id: str) -> List[EmployeeSalaryComponent]:
        result = await db.execute(
            select(EmployeeSalaryComponent).where(EmployeeSalaryComponent.employee_id == employee_id)
        )
        return list(result.scalars().all())

    async def seed_defaults(self, db: AsyncSession) -> int:
        """Create the standard components that do not exist yet"""
        existing = set((await db.execute(select(SalaryComponent.name))).scalars().all())
        missing = [c for c in DEFAULT_COMPONENTS if c["name"] not in existing]
        if not missing:
            return 0
        async with atomic(db):
            for component in missing:
                db.add(SalaryComponent(**component, applies_to_all=True, is_active=True))
        logger.info(f"Seeded {len(missing)} default salary components")
        return len(missing)


class PayrollService:
    """Service for payroll calculation and processing"""

    # ==================== CALCULATION ====================

    async def calculate_payroll(self, db: AsyncSession, employee_id: str) -> Dict[str, Any]:
        """
        Compute an employee's pay from base salary and components

        Returns:
            Dict with base/allowance/deduction/gross/net Decimals and item lines
        """
        employee = await employee_service.get(db, employee_id)
        if employee.status != EmployeeStatus.ACTIVE:
            raise BadRequestError(f"Employee is not active (status: {employee.status.value})")

        general = (await db.execute(
            select(SalaryComponent).where(
                SalaryComponent.is_active.is_(True), SalaryComponent.applies_to_all.is_(True)
            )
        )).scalars().all()
        assigned = (await db.execute(
            select(SalaryComponent, EmployeeSalaryComponent.value)
            .join(EmployeeSalaryComponent, EmployeeSalaryComponent.component_id == SalaryComponent.id)
            .where(EmployeeSalaryComponent.employee_id == employee.id, SalaryComponent.is_active.is_(True))
        )).all()

        values = {component.id: (component, component.default_value) for component in general}
        for component, value in assigned:
            values[component.id] = (component, value if value is not None else component.default_value)

        base = to_money(employee.base_salary)
        allowances = to_money(0)
        deductions = to_money(0)
        items = []
        for component, value in sorted(values.values(), key=lambda pair: (pair[0].type.value, pair[0].name)):
            amount = component_amount(base, component.calculation_type, value)
            if component.type == ComponentType.ALLOWANCE:
                allowances += amount
            else:
                deductions += amount
            items.append({
                "component_id": component.id,
                "name": component.name,
                "type": component.type,
                "amount": amount,
            })

        gross = base + allowances
        return {
            "employee_id": employee.id,
            "base_salary": base,
            "total_allowances": allowances,
            "total_deductions": deductions,
            "gross_salary": gross,
            "net_salary": gross - deductions,
            "items": items,
        }

    # ==================== PROCESSING ====================

    async def process_employee_payroll(
        self, db: AsyncSession, employee_id: str, month: int, year: int, user_id: Optional[str] = None
    ) -> Payroll:
        result = await db.execute(
            select(Payroll).where(Payroll.employee_id == employee_id, Payroll.month == month, Payroll.year == year)
        )
        payroll = result.scalar_one_or_none()
        if payroll and payroll.status != PayrollStatus.DRAFT:
            raise BadRequestError(f"Payroll for {month:02d}/{year} is already {payroll.status.value}")

        calculation = await self.calculate_payroll(db, employee_id)

        async with atomic(db):
            if payroll is None:
                payroll = Payroll(employee_id=employee_id, month=month, year=year)
                db.add(payroll)
            payroll.base_salary = calculation["base_salary"]
            payroll.total_allowances = calculation["total_allowances"]
            payroll.total_deductions = calculation["total_deductions"]
            payroll.gross_salary = calculation["gross_salary"]
            payroll.net_salary = calculation["net_salary"]
            payroll.status = PayrollStatus.PROCESSED
            payroll.processed_at = datetime.utcnow()
            payroll.items = [PayrollItem(**item) for item in calculation["items"]]
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "payroll", payroll.id, user_id,
                new_values={"employee_id": employee_id, "month": month, "year": year,
                            "net_salary": payroll.net_salary},
            )
        return payroll

    async def process_payroll(
        self,
        db: AsyncSession,
        month: int,
        year: int,
        department_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Process every active employee; one failure does not stop the run"""
        query = select(Employee.id, Employee.employee_no).where(
            Employee.status == EmployeeStatus.ACTIVE, Employee.deleted_at.is_(None)
        )
        if department_id:
            query = query.where(Employee.department_id == department_id)
        employees = (await db.execute(query.order_by(Employee.employee_no))).all()

        processed = 0
        errors = []
        for employee_id, employee_no in employees:
            try:
                await self.process_employee_payroll(db, employee_id, month, year, user_id)
                processed += 1
            except CampusError as e:
                errors.append({"employee_id": employee_id, "employee_no": employee_no, "error": e.message})

        logger.info(f"Payroll {month:02d}/{year}: {processed} processed, {len(errors)} failed")
        return {"processed": processed, "failed": len(errors), "errors": errors}

    # ==================== WORKFLOW ====================

    async def get(self, db: AsyncSession, payroll_id: str) -> Payroll:
        payroll = await db.get(Payroll, payroll_id)
        if not payroll:
            raise NotFoundError("Payroll not found")
        return payroll

    async def approve(self, db: AsyncSession, payroll_id: str, user_id: Optional[str] = None) -> Payroll:
        payroll = await self.get(db, payroll_id)
        if payroll.status != PayrollStatus.PROCESSED:
            raise BadRequestError(f"Only processed payrolls can be approved (status: {payroll.status.value})")

        async with atomic(db):
            payroll.status = PayrollStatus.APPROVED
            payroll.approved_at = datetime.utcnow()
            payroll.approved_by_id = user_id
            await audit_service.log(
                db, AuditAction.UPDATE, "payroll", payroll.id, user_id,
                old_values={"status": PayrollStatus.PROCESSED}, new_values={"status": PayrollStatus.APPROVED},
            )
        return payroll

    async def mark_as_paid(
        self, db: AsyncSession, payroll_id: str, reference: str, user_id: Optional[str] = None
    ) -> Payroll:
        payroll = await self.get(db, payroll_id)
        if payroll.status != PayrollStatus.APPROVED:
            raise BadRequestError(f"Only approved payrolls can be paid (status: {payroll.status.value})")

        async with atomic(db):
            payroll.status = PayrollStatus.PAID
            payroll.paid_at = datetime.utcnow()
            payroll.payment_reference = reference
            await audit_service.log(
                db, AuditAction.UPDATE, "payroll", payroll.id, user_id,
                old_values={"status": PayrollStatus.APPROVED},
                new_values={"status": PayrollStatus.PAID, "payment_reference": reference},
            )
        return payroll

    async def bulk_mark_as_paid(
        self, db: AsyncSession, payroll_ids: List[str], reference: str, user_id: Optional[str] = None
    ) -> int:
        result = await db.execute(
            select(Payroll).where(Payroll.id.in_(payroll_ids), Payroll.status == PayrollStatus.APPROVED)
        )
        payrolls = list(result.scalars().all())
        now = datetime.utcnow()
        async with atomic(db):
            for payroll in payrolls:
                payroll.status = PayrollStatus.PAID
                payroll.paid_at = now
                payroll.payment_reference = reference
                await audit_service.log(
                    db, AuditAction.UPDATE, "payroll", payroll.id, user_id,
                    new_values={"status": PayrollStatus.PAID, "payment_reference": reference},
                )
        return len(payrolls)

    # ==================== QUERIES ====================

    async def list(
        self,
        db: AsyncSession,
        month: Optional[int] = None,
        year: Optional[int] = None,
        status: Optional[PayrollStatus] = None,
        employee_id: Optional[str] = None,
        department_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Payroll)
        if department_id:
            query = query.join(Employee, Employee.id == Payroll.employee_id).where(
                Employee.department_id == department_id
            )
        if month:
            query = query.where(Payroll.month == month)
        if year:
            query = query.where(Payroll.year == year)
        if status:
            query = query.where(Payroll.status == status)
        if employee_id:
            query = query.where(Payroll.employee_id == employee_id)
        query = query.order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.created_at)
        return await paginate(db, query, page, limit)

    async def get_report(self, db: AsyncSession, month: int, year: int) -> Dict[str, Any]:
        period = (Payroll.month == month, Payroll.year == year)
        totals = (await db.execute(
            select(
                func.count(Payroll.id),
                func.coalesce(func.sum(Payroll.gross_salary), 0),
                func.coalesce(func.sum(Payroll.total_deductions), 0),
                func.coalesce(func.sum(Payroll.net_salary), 0),
            ).where(*period)
        )).one()
        by_status = (await db.execute(
            select(Payroll.status, func.count(Payroll.id)).where(*period).group_by(Payroll.status)
        )).all()

        return {
            "month": month,
            "year": year,
            "employees": totals[0],
            "total_gross": float(to_money(totals[1])),
            "total_deductions": float(to_money(totals[2])),
            "total_net": float(to_money(totals[3])),
            "by_status": {row[0].value: row[1] for row in by_status},
        }


salary_component_service = SalaryComponentService()
payroll_service = PayrollService()
