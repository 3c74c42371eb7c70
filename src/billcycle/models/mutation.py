"""
Scheduler mutation and run-result models.

A TemplateMutation is the unit the record store commits atomically: one
template after mutation plus the transactions materialized for it.
"""

import uuid
from typing import List

from pydantic import BaseModel, Field, ConfigDict

from billcycle.models.recurring_template import RecurringTemplate
from billcycle.models.transaction import Transaction


class TemplateMutation(BaseModel):
    """An updated template copy and the transactions created alongside it."""
    template: RecurringTemplate
    transactions: List[Transaction] = Field(default_factory=list)

    @property
    def template_id(self) -> uuid.UUID:
        return self.template.template_id

    @property
    def deactivated(self) -> bool:
        return not self.template.is_active


class ScheduleFailure(BaseModel):
    """A template the scheduler could not process this run."""
    template_id: uuid.UUID = Field(alias="templateId")
    name: str
    error: str

    model_config = ConfigDict(populate_by_name=True)


class ScheduleRunResult(BaseModel):
    """Outcome of one generate-due batch run."""
    mutations: List[TemplateMutation] = Field(default_factory=list)
    failures: List[ScheduleFailure] = Field(default_factory=list)

    @property
    def materialized_transactions(self) -> List[Transaction]:
        return [txn for mutation in self.mutations for txn in mutation.transactions]

    @property
    def deactivated_templates(self) -> List[RecurringTemplate]:
        return [m.template for m in self.mutations if m.deactivated]
