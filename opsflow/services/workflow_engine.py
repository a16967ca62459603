'''
Workflow Engine

Drives one WorkflowExecution through ``running -> completed | failed``. Steps
run strictly in order; each outcome (retries included) is persisted before the
next step starts.
'''

import time
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.orm import Session

from opsflow.models.workflow import Workflow
from opsflow.models.workflow_execution import WorkflowExecution
from opsflow.models.types import utcnow
from opsflow.services.errors import NotFoundError, SubWorkflowError, ValidationError
from opsflow.services.metrics import get_metrics_service
from opsflow.services.retry_policy import ErrorPolicy, RetryRunner
from opsflow.services.step_executor import StepExecutor, step_action
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.workflows')

DEFAULT_MAX_CALL_DEPTH = 5


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def _step_result(step_id: str, status: str, start: float, **fields) -> Dict[str, Any]:
    return {
        "step_id": step_id,
        "status": status,
        **fields,
        "duration_ms": _elapsed_ms(start),
        "timestamp": utcnow().isoformat(),
    }


class WorkflowEngine:
    def __init__(self, db: Session, llm=None, notifier=None, http_client=None,
                 retry_runner: Optional[RetryRunner] = None,
                 max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
        self.db = db
        self.llm = llm
        self.notifier = notifier
        self.http_client = http_client
        self.retry_runner = retry_runner or RetryRunner()
        self.max_call_depth = max_call_depth

    def execute(self, workflow_id: str, trigger_data: Optional[dict] = None,
                org_id: Optional[str] = None, resume_from_step: Optional[str] = None,
                parent_execution: Optional[WorkflowExecution] = None,
                call_chain: Sequence[str] = ()) -> WorkflowExecution:
        """
        Run ``workflow_id`` to completion or failure.

        Args:
            workflow_id: Workflow to run
            trigger_data: Payload exposed to steps as ``trigger``
            org_id: When given, the workflow must belong to this org
            resume_from_step: Start at this step id instead of the first step
            parent_execution: Set when called from a ``sub_workflow`` step
            call_chain: Workflow ids already running above this call

        Returns:
            The finished WorkflowExecution. A failed run is returned, not raised.

        Raises:
            NotFoundError: unknown workflow, or one outside ``org_id``
            ValidationError: ``resume_from_step`` is not a step of the workflow
        """
        workflow = self.db.query(Workflow).filter(Workflow.id == workflow_id).first()
        if not workflow or (org_id is not None and workflow.org_id != org_id):
            raise NotFoundError("Workflow not found")

        steps = list(workflow.steps or [])
        start_index = 0
        if resume_from_step:
            start_index = workflow.step_index(resume_from_step)
            if start_index < 0:
                raise ValidationError(f"Unknown resume_from_step: {resume_from_step}")

        execution = WorkflowExecution(
            workflow_id=workflow.id,
            org_id=workflow.org_id,
            parent_execution_id=parent_execution.id if parent_execution else None,
            call_depth=len(call_chain),
            trigger_data=trigger_data or {},
            status="running",
            step_results=[],
        )
        self.db.add(execution)
        self.db.commit()
        logger.log_execution_event(
            'workflow', execution.id, 'running',
            workflow_id=workflow.id, org_id=workflow.org_id, call_depth=execution.call_depth
        )

        chain = tuple(call_chain) + (workflow.id,)
        executor = StepExecutor(
            self.db, workflow.org_id,
            llm=self.llm, notifier=self.notifier, http_client=self.http_client,
            run_sub_workflow=lambda sub_id, data: self._run_sub_workflow(
                sub_id, data, workflow.org_id, execution, chain),
        )
        context = {
            "trigger": execution.trigger_data,
            "workflow": {"id": workflow.id, "execution_id": execution.id},
            "steps": {},
        }
        step_results = []

        for step in steps[start_index:]:
            step_id = step.get("id")
            action = step_action(step)
            policy = ErrorPolicy.from_step(step)

            execution.current_step = step_id
            self.db.commit()

            start = time.time()
            try:
                result = executor.execute_step(step, context)
            except Exception as e:
                step_results.append(_step_result(step_id, "failed", start, error=str(e)))
                self._save_results(execution, step_results)

                error = e
                attempts = {}
                if policy.should_retry(e):
                    outcome = self.retry_runner.retry(
                        lambda: executor.execute_step(step, context),
                        policy,
                        on_attempt_failed=lambda attempt, err: logger.warning(
                            f"Retry {attempt} of step {step_id} failed: {err}",
                            execution_id=execution.id, step_id=step_id),
                    )
                    if outcome.succeeded:
                        step_results[-1] = _step_result(
                            step_id, "success", start,
                            result=outcome.result, retry_count=outcome.attempts)
                        self._save_results(execution, step_results)
                        context["steps"][step_id] = outcome.result
                        self._record_step(execution, step_id, action, "success", start,
                                          retry_count=outcome.attempts)
                        continue

                    error = outcome.error
                    attempts = {"retry_count": outcome.attempts}
                    step_results[-1] = _step_result(
                        step_id, "failed", start, error=str(error), **attempts)
                    self._save_results(execution, step_results)

                self._record_step(execution, step_id, action, "failed", start,
                                  error=str(error), **attempts)
                if not policy.continue_on_error:
                    return self._finish(execution, "failed", error_message=str(error))
                continue

            step_results.append(_step_result(step_id, "success", start, result=result))
            self._save_results(execution, step_results)
            context["steps"][step_id] = result
            self._record_step(execution, step_id, action, "success", start)

        workflow.execution_count = (workflow.execution_count or 0) + 1
        workflow.last_executed = utcnow()
        return self._finish(execution, "completed")

    def _run_sub_workflow(self, sub_workflow_id: str, trigger_data: Any, org_id: str,
                          parent: WorkflowExecution, chain: Sequence[str]) -> WorkflowExecution:
        if sub_workflow_id in chain:
            raise SubWorkflowError(
                f"Sub-workflow cycle detected: {' -> '.join(list(chain) + [sub_workflow_id])}")
        if len(chain) > self.max_call_depth:
            raise SubWorkflowError(
                f"Sub-workflow call depth exceeds limit of {self.max_call_depth}")

        if not isinstance(trigger_data, dict):
            trigger_data = {"data": trigger_data}

        try:
            return self.execute(sub_workflow_id, trigger_data, org_id=org_id,
                                parent_execution=parent, call_chain=chain)
        except NotFoundError:
            raise SubWorkflowError(f"Sub-workflow {sub_workflow_id} not found")

    def _save_results(self, execution: WorkflowExecution, step_results: list) -> None:
        # JSON columns are not mutation-tracked; always assign a fresh list
        execution.step_results = list(step_results)
        self.db.commit()

    def _record_step(self, execution, step_id, action, status, start, **kwargs):
        duration_ms = _elapsed_ms(start)
        logger.log_step_event(execution.id, step_id, status, duration_ms, action=action, **kwargs)
        metrics = get_metrics_service()
        if metrics:
            metrics.record_workflow_step(action or "none", status)

    def _finish(self, execution: WorkflowExecution, status: str,
                error_message: Optional[str] = None) -> WorkflowExecution:
        execution.status = status
        execution.error_message = error_message
        execution.completed_at = utcnow()
        self.db.commit()

        logger.log_execution_event(
            'workflow', execution.id, status,
            workflow_id=execution.workflow_id, error_message=error_message
        )
        metrics = get_metrics_service()
        if metrics:
            metrics.record_workflow_execution(status)
        return execution
