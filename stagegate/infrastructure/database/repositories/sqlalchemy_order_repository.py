"""
SQLAlchemy Order Repository Implementation.

Implements OrderRepository interface using SQLAlchemy.
"""
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stagegate.domain.entities import Order
from stagegate.domain.exceptions import DataIntegrityError
from stagegate.domain.repositories import OrderRepository
from stagegate.infrastructure.database.mappers import OrderMapper
from stagegate.infrastructure.database.models import OrderModel


logger = logging.getLogger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """
    SQLAlchemy implementation of OrderRepository.

    Commit is handled by the Unit of Work.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def get(self, order_id: int) -> Optional[Order]:
        row = self.session.get(OrderModel, order_id, options=[selectinload(OrderModel.materials)])
        if row is None:
            logger.debug(f"Order not found: {order_id}")
            return None
        return OrderMapper.to_domain(row)

    def add(self, order: Order) -> Order:
        row = OrderMapper.apply(order, OrderModel())
        self.session.add(row)
        self.session.flush()
        order.id = row.id
        order.created_at = row.created_at
        logger.info(f"✅ Created order: {order.order_number}")
        return order

    def update(self, order: Order) -> None:
        row = self.session.get(OrderModel, order.id)
        if row is None:
            raise DataIntegrityError(f"Order {order.id} not found")
        OrderMapper.apply(order, row)
        self.session.flush()

    def find_created_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Order]:
        stmt = select(OrderModel).options(selectinload(OrderModel.materials))
        if date_from is not None:
            stmt = stmt.where(OrderModel.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(OrderModel.created_at <= date_to)
        stmt = stmt.order_by(OrderModel.id)
        return [OrderMapper.to_domain(row) for row in self.session.scalars(stmt)]
