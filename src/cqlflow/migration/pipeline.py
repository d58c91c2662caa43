"""Sequential DDL execution with per-step results."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field

from cqlflow.common.exceptions import CQLFlowError, ddl_error
from cqlflow.constants.migration import MigrationPolicy, MigrationState, StepStatus
from cqlflow.logging import get_logger
from cqlflow.protocols.providers import DEFINITION_QUERY_OPTIONS, StatementExecutor
from cqlflow.query_builder.base import CompiledStatement
from cqlflow.types.base import CQLFlowBaseModel

logger = get_logger(__name__)


class StepResult(CQLFlowBaseModel):
    """Result of a single DDL step."""
    name: str
    phase: str
    statement: str
    status: StepStatus
    error: Optional[str] = None


class MigrationResult(CQLFlowBaseModel):
    """Complete result of one reconciliation run."""
    table: str
    policy: MigrationPolicy
    state: MigrationState = MigrationState.FAILED
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    steps: List[StepResult] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    @property
    def statements(self) -> List[str]:
        return [step.statement for step in self.steps]

    def summary(self) -> Dict[str, int]:
        return {
            "total_steps": len(self.steps),
            "successful": len([s for s in self.steps if s.status == StepStatus.SUCCESS]),
            "failed": len([s for s in self.steps if s.status == StepStatus.FAILED]),
        }


class DDLPipeline:
    """Runs DDL statements strictly in order, stopping at the first failure.

    Every executed statement is recorded on ``result``. A failing statement
    is wrapped in the CQLFlowError of its phase and re-raised; statements
    already applied stay applied.
    """

    def __init__(self, executor: StatementExecutor, result: MigrationResult):
        self.executor = executor
        self.result = result

    def run(self, name: str, phase: str, compiled: CompiledStatement) -> None:
        logger.info(
            "migration.ddl.execute",
            extra={"step": name, "phase": phase, "statement": compiled.statement},
        )
        try:
            self.executor.run(compiled.statement, compiled.params, DEFINITION_QUERY_OPTIONS)
        except CQLFlowError as e:
            self._record(name, phase, compiled, StepStatus.FAILED, str(e))
            raise
        except Exception as e:
            self._record(name, phase, compiled, StepStatus.FAILED, str(e))
            raise ddl_error(phase, e, statement=compiled.statement, details={"table": self.result.table})
        self._record(name, phase, compiled, StepStatus.SUCCESS)

    def _record(
        self,
        name: str,
        phase: str,
        compiled: CompiledStatement,
        status: StepStatus,
        error: Optional[str] = None,
    ) -> None:
        self.result.steps.append(
            StepResult(name=name, phase=phase, statement=compiled.statement, status=status, error=error)
        )
