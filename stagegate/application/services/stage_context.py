"""Loading of a processing instance together with its stage and order."""

from dataclasses import dataclass
from typing import Optional

from stagegate.application.interfaces import IUnitOfWork
from stagegate.domain.entities import Order, ProcessingInstance, StageDefinition
from stagegate.domain.enums import StageKind
from stagegate.domain.exceptions import DataIntegrityError


@dataclass
class StageContext:
    """An instance with the records the gates read alongside it."""
    instance: ProcessingInstance
    stage: StageDefinition
    order: Order

    @property
    def kind(self) -> StageKind:
        return self.stage.kind


def load_stage_context(uow: IUnitOfWork, instance_id: int) -> Optional[StageContext]:
    """
    Load an instance with its stage definition and order.

    Args:
        uow: Open unit of work
        instance_id: Processing instance identifier

    Returns:
        StageContext, or None when the instance does not exist

    Raises:
        DataIntegrityError: If the instance's stage definition or order is missing
    """
    instance = uow.processings.get(instance_id)
    if instance is None:
        return None

    stage = uow.stages.get(instance.stage_id)
    if stage is None:
        raise DataIntegrityError(
            f"Stage definition {instance.stage_id} missing for processing instance {instance_id}"
        )

    order = uow.orders.get(instance.order_id)
    if order is None:
        raise DataIntegrityError(
            f"Order {instance.order_id} missing for processing instance {instance_id}"
        )

    return StageContext(instance=instance, stage=stage, order=order)
