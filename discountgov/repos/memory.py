"""In-Memory Repositories.

Dict-backed implementations of discountgov.repos.interfaces for tests and
local wiring. Data is lost on restart.
"""

import uuid
from decimal import Decimal
from typing import Generic, Iterable, Optional, TypeVar

import structlog

from discountgov.domain.models import (
    Approval,
    BusinessRule,
    Company,
    Customer,
    DiscountRequest,
    Product,
    TrainingRun,
    User,
)
from discountgov.repos.interfaces import (
    ApprovalRepository,
    BusinessRuleRepository,
    CompanyRepository,
    CustomerRepository,
    DiscountRequestRepository,
    ProductRepository,
    Repositories,
    TrainingRunRepository,
    UserRepository,
)

logger = structlog.get_logger(__name__)

E = TypeVar("E")


class _Store(Generic[E]):
    def __init__(self, items: Iterable[E] = ()):
        self._items: dict[uuid.UUID, E] = {}
        for item in items:
            self.put(item)

    def put(self, item: E) -> E:
        self._items[item.id] = item
        return item

    async def get(self, item_id: uuid.UUID) -> Optional[E]:
        return self._items.get(item_id)

    def all(self) -> list[E]:
        return list(self._items.values())


class InMemoryCompanyRepository(_Store[Company], CompanyRepository):
    pass


class InMemoryUserRepository(_Store[User], UserRepository):
    pass


class InMemoryCustomerRepository(_Store[Customer], CustomerRepository):
    pass


class InMemoryProductRepository(_Store[Product], ProductRepository):
    async def get_unit_costs(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Decimal]:
        return {
            pid: self._items[pid].unit_cost for pid in product_ids if pid in self._items
        }


class InMemoryDiscountRequestRepository(_Store[DiscountRequest], DiscountRequestRepository):
    async def add(self, request: DiscountRequest) -> DiscountRequest:
        logger.debug("discount_request_stored", request_id=str(request.id))
        return self.put(request)

    async def update(self, request: DiscountRequest) -> DiscountRequest:
        return self.put(request)

    async def list_by_customer(
        self, company_id: uuid.UUID, customer_id: uuid.UUID
    ) -> list[DiscountRequest]:
        return [
            r for r in self._items.values()
            if r.company_id == company_id and r.customer_id == customer_id
        ]

    async def list_by_salesperson(
        self, company_id: uuid.UUID, salesperson_id: uuid.UUID
    ) -> list[DiscountRequest]:
        return [
            r for r in self._items.values()
            if r.company_id == company_id and r.salesperson_id == salesperson_id
        ]

    async def list_by_company(self, company_id: uuid.UUID) -> list[DiscountRequest]:
        return [r for r in self._items.values() if r.company_id == company_id]


class InMemoryApprovalRepository(_Store[Approval], ApprovalRepository):
    async def add(self, approval: Approval) -> Approval:
        return self.put(approval)

    async def list_by_request(self, request_id: uuid.UUID) -> list[Approval]:
        return [a for a in self._items.values() if a.discount_request_id == request_id]


class InMemoryBusinessRuleRepository(_Store[BusinessRule], BusinessRuleRepository):
    async def list_active(self, company_id: uuid.UUID) -> list[BusinessRule]:
        return [r for r in self._items.values() if r.company_id == company_id and r.is_active]


class InMemoryTrainingRunRepository(_Store[TrainingRun], TrainingRunRepository):
    async def add(self, run: TrainingRun) -> TrainingRun:
        logger.debug("training_run_stored", company_id=str(run.company_id), run_id=str(run.id))
        return self.put(run)

    async def last(self, company_id: uuid.UUID) -> Optional[TrainingRun]:
        runs = [r for r in self._items.values() if r.company_id == company_id]
        return max(runs, key=lambda r: r.trained_at, default=None)


def in_memory_repositories() -> Repositories:
    return Repositories(
        companies=InMemoryCompanyRepository(),
        users=InMemoryUserRepository(),
        customers=InMemoryCustomerRepository(),
        products=InMemoryProductRepository(),
        discount_requests=InMemoryDiscountRequestRepository(),
        approvals=InMemoryApprovalRepository(),
        business_rules=InMemoryBusinessRuleRepository(),
        training_runs=InMemoryTrainingRunRepository(),
    )
