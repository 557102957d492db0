"""
Trigger Incremental Learning workflow: feed decided requests back to the model.

Steps:
1. Load the company and an active reviewer (manager or admin)
2. Stop if governance has incremental learning turned off
3. Stop if the last run is more recent than the retraining frequency (unless forced)
4. Collect one data point per decided request from its latest approval;
   incremental runs only take decisions made after the last run
5. Stop when fewer than the minimum points were collected (unless forced)
6. Train through the resilient AI wrapper when the AI is available;
   otherwise the data is only logged
7. Record the run when training succeeded
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from discountgov.ai.resilient import AIOutcome
from discountgov.ai.schemas import ModelTrainingRequest, TrainingDataPoint, TrainingResult
from discountgov.domain.enums import (
    ApprovalDecision,
    ApprovalSource,
    DiscountRequestStatus,
    TrainingType,
)
from discountgov.domain.models import Approval, DiscountRequest, TrainingRun
from discountgov.errors import DomainValidationError
from discountgov.workflows.base import WorkflowBase

logger = structlog.get_logger(__name__)

LOW_VOLUME_POINTS = 50
MAX_IMBALANCE_RATIO = Decimal("10")
STALE_DATA_DAYS = 30


@dataclass(frozen=True)
class TriggerIncrementalLearningCommand:
    company_id: uuid.UUID
    requested_by: uuid.UUID
    mode: TrainingType = TrainingType.INCREMENTAL
    minimum_data_points: int = 10
    force: bool = False
    include_human_decisions: bool = True
    include_ai_decisions: bool = False


@dataclass(frozen=True)
class TrainingBreakdown:
    human_decisions: int = 0
    ai_decisions: int = 0
    approved: int = 0
    rejected: int = 0
    adjustments_requested: int = 0

    @classmethod
    def from_points(cls, points: list[TrainingDataPoint]) -> "TrainingBreakdown":
        return cls(
            human_decisions=sum(p.decision_source == ApprovalSource.HUMAN for p in points),
            ai_decisions=sum(p.decision_source == ApprovalSource.AI for p in points),
            approved=sum(p.decision == ApprovalDecision.APPROVE for p in points),
            rejected=sum(p.decision == ApprovalDecision.REJECT for p in points),
            adjustments_requested=sum(
                p.decision == ApprovalDecision.REQUEST_ADJUSTMENT for p in points
            ),
        )


@dataclass
class TriggerIncrementalLearningResult:
    success: bool
    message: str
    mode: TrainingType
    data_points: int = 0
    breakdown: Optional[TrainingBreakdown] = None
    warnings: list[str] = field(default_factory=list)
    training: Optional[AIOutcome[TrainingResult]] = None
    run: Optional[TrainingRun] = None

    @property
    def trained(self) -> bool:
        return self.run is not None

    @property
    def model_version(self) -> Optional[str]:
        return self.run.model_version if self.run is not None else None


class TriggerIncrementalLearningWorkflow(WorkflowBase):
    """Retrain the company's model on the decisions taken since the last run."""

    async def execute(
        self, command: TriggerIncrementalLearningCommand
    ) -> TriggerIncrementalLearningResult:
        if not (command.include_human_decisions or command.include_ai_decisions):
            raise DomainValidationError(
                "Include human decisions, AI decisions or both", field="include_human_decisions"
            )
        if command.minimum_data_points < 0:
            raise DomainValidationError(
                "Minimum data points cannot be negative", field="minimum_data_points"
            )

        await self._company(command.company_id)
        await self._reviewer(command.company_id, command.requested_by)

        governance = (await self.ai.get_governance_settings(command.company_id)).value
        if not governance.enable_incremental_learning:
            return self._skipped(command, "Incremental learning is disabled for this company")

        now = self.clock()
        last_run = await self.repos.training_runs.last(command.company_id)
        if last_run is not None and not command.force:
            due_at = last_run.trained_at + timedelta(days=governance.retraining_frequency_days)
            if now < due_at:
                return self._skipped(
                    command,
                    f"Model was trained on {last_run.trained_at:%Y-%m-%d}; "
                    f"next training is due on {due_at:%Y-%m-%d}",
                )

        since = None
        if last_run is not None and command.mode == TrainingType.INCREMENTAL:
            since = last_run.trained_at
        points = await self._collect(command, since)

        if len(points) < command.minimum_data_points and not command.force:
            return self._skipped(
                command,
                f"Insufficient training data. Collected {len(points)} points, minimum required "
                f"is {command.minimum_data_points}. Use force to override.",
                data_points=len(points),
            )
        if not points:
            return self._skipped(command, "No training data available for the specified criteria")

        result = TriggerIncrementalLearningResult(
            success=True,
            message="",
            mode=command.mode,
            data_points=len(points),
            breakdown=TrainingBreakdown.from_points(points),
            warnings=_warnings(command, points, now),
        )

        available = await self.ai.is_available(command.company_id)
        if not available.value:
            result.message = (
                "Training data collected successfully. AI service not available; "
                "data logged for future training."
            )
            logger.info(
                "incremental_learning_deferred",
                company_id=str(command.company_id),
                data_points=len(points),
            )
            return result

        training = await self.ai.train_model(
            ModelTrainingRequest(
                company_id=command.company_id,
                training_data=points,
                training_type=command.mode,
            )
        )
        result.training = training
        result.success = training.value.success
        result.message = training.value.message
        if training.value.success:
            result.run = await self.repos.training_runs.add(
                TrainingRun(
                    company_id=command.company_id,
                    training_type=command.mode,
                    data_points=training.value.data_points_processed,
                    trained_at=now,
                    model_version=training.value.model_version,
                )
            )
        logger.info(
            "incremental_learning_completed",
            company_id=str(command.company_id),
            mode=command.mode.value,
            success=result.success,
            data_points=len(points),
            model_version=result.model_version,
            source=training.source.value,
        )
        return result

    async def _collect(
        self, command: TriggerIncrementalLearningCommand, since: Optional[datetime]
    ) -> list[TrainingDataPoint]:
        sources = set()
        if command.include_human_decisions:
            sources.add(ApprovalSource.HUMAN)
        if command.include_ai_decisions:
            sources.add(ApprovalSource.AI)

        points: list[TrainingDataPoint] = []
        for request in await self.repos.discount_requests.list_by_company(command.company_id):
            if request.status == DiscountRequestStatus.UNDER_ANALYSIS:
                continue
            approvals = await self.repos.approvals.list_by_request(request.id)
            if not approvals:
                continue
            latest = max(approvals, key=lambda a: a.decided_at)
            if latest.source not in sources:
                continue
            if since is not None and latest.decided_at <= since:
                continue
            points.append(_data_point(request, latest))
        points.sort(key=lambda p: p.decision_date)
        return points

    def _skipped(
        self, command: TriggerIncrementalLearningCommand, message: str, data_points: int = 0
    ) -> TriggerIncrementalLearningResult:
        logger.info(
            "incremental_learning_skipped",
            company_id=str(command.company_id),
            reason=message,
        )
        return TriggerIncrementalLearningResult(
            success=False, message=message, mode=command.mode, data_points=data_points
        )


def _data_point(request: DiscountRequest, approval: Approval) -> TrainingDataPoint:
    return TrainingDataPoint(
        discount_request_id=request.id,
        requested_discount=request.requested_discount_percentage,
        final_margin=request.estimated_margin_percentage,
        decision=approval.decision.value,
        decision_source=approval.source.value,
        decision_date=approval.decided_at,
    )


def _warnings(
    command: TriggerIncrementalLearningCommand,
    points: list[TrainingDataPoint],
    now: datetime,
) -> list[str]:
    warnings: list[str] = []
    if len(points) < LOW_VOLUME_POINTS:
        warnings.append(
            f"Low training data volume ({len(points)} points). Model accuracy may be limited."
        )

    approved = sum(p.decision == ApprovalDecision.APPROVE for p in points)
    rejected = sum(p.decision == ApprovalDecision.REJECT for p in points)
    if approved and rejected:
        ratio = Decimal(max(approved, rejected)) / Decimal(min(approved, rejected))
        if ratio > MAX_IMBALANCE_RATIO:
            warnings.append(
                f"Highly imbalanced data: {approved} approved vs {rejected} rejected. "
                "Model may be biased."
            )

    if command.include_ai_decisions and not command.include_human_decisions:
        warnings.append(
            "Training only on AI decisions may reinforce existing biases. "
            "Consider including human decisions."
        )

    age_days = (now - points[-1].decision_date).days
    if age_days > STALE_DATA_DAYS:
        warnings.append(
            f"Most recent training data is {age_days} days old. "
            "Model may not reflect current patterns."
        )
    return warnings
