"""Repository Interfaces — the persistence contracts the workflows consume.

Storage technology is out of scope; adapters implement these ABCs.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

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


class CompanyRepository(ABC):
    @abstractmethod
    async def get(self, company_id: uuid.UUID) -> Optional[Company]:
        pass


class UserRepository(ABC):
    @abstractmethod
    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        pass


class CustomerRepository(ABC):
    @abstractmethod
    async def get(self, customer_id: uuid.UUID) -> Optional[Customer]:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get(self, product_id: uuid.UUID) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_unit_costs(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Decimal]:
        """Unit cost per product; unknown products are left out."""
        pass


class DiscountRequestRepository(ABC):
    @abstractmethod
    async def get(self, request_id: uuid.UUID) -> Optional[DiscountRequest]:
        pass

    @abstractmethod
    async def add(self, request: DiscountRequest) -> DiscountRequest:
        pass

    @abstractmethod
    async def update(self, request: DiscountRequest) -> DiscountRequest:
        pass

    @abstractmethod
    async def list_by_customer(
        self, company_id: uuid.UUID, customer_id: uuid.UUID
    ) -> list[DiscountRequest]:
        pass

    @abstractmethod
    async def list_by_salesperson(
        self, company_id: uuid.UUID, salesperson_id: uuid.UUID
    ) -> list[DiscountRequest]:
        pass

    @abstractmethod
    async def list_by_company(self, company_id: uuid.UUID) -> list[DiscountRequest]:
        pass


class ApprovalRepository(ABC):
    @abstractmethod
    async def add(self, approval: Approval) -> Approval:
        pass

    @abstractmethod
    async def list_by_request(self, request_id: uuid.UUID) -> list[Approval]:
        pass


class BusinessRuleRepository(ABC):
    @abstractmethod
    async def list_active(self, company_id: uuid.UUID) -> list[BusinessRule]:
        pass


class TrainingRunRepository(ABC):
    @abstractmethod
    async def add(self, run: TrainingRun) -> TrainingRun:
        pass

    @abstractmethod
    async def last(self, company_id: uuid.UUID) -> Optional[TrainingRun]:
        """Most recent run of the company, or None if it never trained."""
        pass


@dataclass
class Repositories:
    """Bundle handed to the workflows."""
    companies: CompanyRepository
    users: UserRepository
    customers: CustomerRepository
    products: ProductRepository
    discount_requests: DiscountRequestRepository
    approvals: ApprovalRepository
    business_rules: BusinessRuleRepository
    training_runs: TrainingRunRepository
