# application/orchestrators/refactoring_host.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union
import inspect

from application.services.task_generator import TaskGenerationConfig, TaskGenerator
from application.services.transform_pipeline import TransformPipeline
from domain.errors import TaskNotApprovedError
from domain.models.agent_task import AgentTask, ApprovalDecision, TaskApprovalResult, TaskStatus, utc_now
from domain.models.approval_policy import ApprovalPolicy
from domain.models.finding import Finding
from domain.models.task_intent import AddBinding, AddImport, AddStateObject, TaskIntent
from domain.models.task_run import ApprovalRecord, ApprovalSource, HostRunResult, TaskRecord, TaskRun
from domain.models.transform import TransformContext, TransformResult
from infrastructure.storage.run_store import RunStore
from infrastructure.transforms.registry import TransformRegistry
from shared.logging import log_run_completed, log_task_decision, logger


class FindingProducer(Protocol):
    """Anything that turns a file into findings; ``analyze`` may be a coroutine"""

    def analyze(self, file_path: str, content: str) -> Union[List[Finding], Awaitable[List[Finding]]]:
        ...


ApprovalHandler = Callable[[AgentTask], Union[TaskApprovalResult, Awaitable[TaskApprovalResult]]]


class HostEventType(Enum):
    ANALYSIS_STARTED = "analysisStarted"
    ANALYSIS_COMPLETED = "analysisCompleted"
    TASK_PROPOSED = "taskProposed"
    TASK_APPROVED = "taskApproved"
    TASK_REJECTED = "taskRejected"
    TASK_DEFERRED = "taskDeferred"
    EXECUTION_STARTED = "executionStarted"
    EXECUTION_COMPLETED = "executionCompleted"
    EXECUTION_FAILED = "executionFailed"
    RUN_COMPLETED = "runCompleted"


@dataclass(frozen=True)
class HostEvent:
    type: HostEventType
    task: Optional[AgentTask] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


HostObserver = Callable[[HostEvent], Optional[Awaitable[None]]]


@dataclass
class HostConfig:
    task_config: TaskGenerationConfig = field(default_factory=TaskGenerationConfig)
    max_tasks_per_run: int = 10
    # Dry run when False: results are computed but returned sources stay untouched
    apply_changes: bool = False
    excluded_paths: Tuple[str, ...] = (".build", "DerivedData", ".git", "Pods")

    def is_excluded(self, path: str) -> bool:
        parts = PurePosixPath(path).parts
        return any(pattern in parts or fnmatch(path, pattern) for pattern in self.excluded_paths)


# Property wrappers need SwiftUI in scope
_WRAPPER_INTENTS = (AddStateObject, AddBinding)


class RefactoringHost:
    """Drives analyze -> propose -> approve -> execute for one project.

    Tasks are handled strictly one at a time in generation order. Transform
    failures are recorded on the task and the run carries on; store failures
    propagate to the caller.
    """

    def __init__(self,
                 project_root: Union[str, Path],
                 config: Optional[HostConfig] = None,
                 generator: Optional[TaskGenerator] = None,
                 pipeline: Optional[TransformPipeline] = None,
                 producers: Sequence[FindingProducer] = (),
                 policy: Optional[ApprovalPolicy] = None,
                 approval_handler: Optional[ApprovalHandler] = None,
                 store: Optional[RunStore] = None):
        self.project_root = Path(project_root)
        self.config = config or HostConfig()
        self.generator = generator or TaskGenerator(self.config.task_config)
        self.pipeline = pipeline or TransformPipeline(TransformRegistry.syntax_based())
        self.producers = list(producers)
        self.policy = policy
        self.approval_handler = approval_handler
        self.store = store
        self._observers: List[HostObserver] = []

    def add_observer(self, observer: HostObserver):
        self._observers.append(observer)

    async def _emit(self, event_type: HostEventType, task: Optional[AgentTask] = None, **data):
        event = HostEvent(type=event_type, task=task, data=data)
        for observer in self._observers:
            outcome = observer(event)
            if inspect.isawaitable(outcome):
                await outcome

    # Pipeline stages

    async def analyze(self, sources: Dict[str, str]) -> List[Finding]:
        await self._emit(HostEventType.ANALYSIS_STARTED, path=str(self.project_root))

        findings: List[Finding] = []
        for path, content in sources.items():
            if self.config.is_excluded(path):
                logger.debug("Skipping excluded path", path=path)
                continue
            for producer in self.producers:
                produced = producer.analyze(path, content)
                if inspect.isawaitable(produced):
                    produced = await produced
                findings.extend(produced)

        logger.info("Analysis completed",
                   project_path=str(self.project_root),
                   files=len(sources),
                   findings=len(findings))
        await self._emit(HostEventType.ANALYSIS_COMPLETED, finding_count=len(findings))
        return findings

    async def propose_tasks(self, findings: Sequence[Finding]) -> List[AgentTask]:
        tasks = self.generator.generate_tasks(findings)[:self.config.max_tasks_per_run]
        for task in tasks:
            await self._emit(HostEventType.TASK_PROPOSED, task)
        return tasks

    async def request_approval(self, task: AgentTask) -> TaskApprovalResult:
        result, _ = await self._decide(task)
        return result

    async def _decide(self, task: AgentTask) -> Tuple[TaskApprovalResult, ApprovalSource]:
        pending_reason = None

        if self.policy is not None:
            verdict = self.policy.decide(task)
            if verdict.decision != ApprovalDecision.DEFERRED:
                return await self._record_decision(task, verdict, ApprovalSource.POLICY), ApprovalSource.POLICY
            pending_reason = verdict.reason

        if self.approval_handler is not None:
            verdict = self.approval_handler(task)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            return await self._record_decision(task, verdict, ApprovalSource.CALLBACK), ApprovalSource.CALLBACK

        verdict = TaskApprovalResult(
            task=task,
            decision=ApprovalDecision.DEFERRED,
            reason=pending_reason or "Awaiting human review",
        )
        return await self._record_decision(task, verdict, ApprovalSource.HUMAN), ApprovalSource.HUMAN

    async def _record_decision(self, task: AgentTask, verdict: TaskApprovalResult,
                               source: ApprovalSource) -> TaskApprovalResult:
        if verdict.decision in (ApprovalDecision.APPROVED, ApprovalDecision.MODIFIED):
            task.approve(verdict.reason, modified=verdict.decision == ApprovalDecision.MODIFIED)
            event = HostEventType.TASK_APPROVED
        elif verdict.decision == ApprovalDecision.REJECTED:
            task.reject(verdict.reason)
            event = HostEventType.TASK_REJECTED
        else:
            task.defer(verdict.reason)
            event = HostEventType.TASK_DEFERRED

        log_task_decision(
            task_id=task.id,
            intent_kind=task.intent.kind,
            decision=verdict.decision.value,
            source=source.value,
            confidence=task.confidence,
            reason=verdict.reason,
            policy_name=self.policy.name if source == ApprovalSource.POLICY and self.policy else None,
        )
        await self._emit(event, task, reason=verdict.reason)
        return TaskApprovalResult(task=task, decision=verdict.decision, reason=verdict.reason)

    async def execute(self, task: AgentTask, source: str) -> TransformResult:
        if task.status != TaskStatus.APPROVED:
            raise TaskNotApprovedError(task.id)

        await self._emit(HostEventType.EXECUTION_STARTED, task)

        result = self.pipeline.execute(
            self.intent_plan(task),
            source,
            self._context_for(task),
        ).to_transform_result()

        if result.success:
            task.mark_completed()
            await self._emit(HostEventType.EXECUTION_COMPLETED, task, lines_changed=result.lines_changed)
        else:
            task.mark_failed()
            await self._emit(HostEventType.EXECUTION_FAILED, task, warnings=list(result.warnings))
        return result

    @staticmethod
    def intent_plan(task: AgentTask) -> List[TaskIntent]:
        if isinstance(task.intent, _WRAPPER_INTENTS):
            return [AddImport(module="SwiftUI"), task.intent]
        return [task.intent]

    @staticmethod
    def target_file(task: AgentTask) -> Optional[str]:
        path = getattr(task.intent, "file", None) or getattr(task.intent, "path", None)
        if path:
            return path
        if task.scope.is_single_file:
            return task.scope.name
        return None

    def _context_for(self, task: AgentTask) -> TransformContext:
        intent = task.intent
        return TransformContext(
            file_path=self.target_file(task) or "",
            property_name=getattr(intent, "property", None),
            type_name=getattr(intent, "type", None) or getattr(intent, "module", None),
            line_number=getattr(intent, "line", None),
        )

    # Full cycle

    async def run(self, sources: Dict[str, str]) -> HostRunResult:
        task_run = TaskRun(
            project_path=str(self.project_root),
            metadata={"policy": self.policy.name if self.policy else "none"},
        )

        findings = await self.analyze(sources)
        tasks = await self.propose_tasks(findings)

        buffers = dict(sources)
        decisions: Dict[str, TaskApprovalResult] = {}
        results: Dict[str, TransformResult] = {}
        processed = 0
        succeeded = 0

        for task in tasks:
            processed += 1
            decision, approval_source = await self._decide(task)
            decisions[task.id] = decision
            approval = ApprovalRecord(
                decision=decision.decision,
                source=approval_source,
                reason=decision.reason,
                policy_name=self.policy.name if approval_source == ApprovalSource.POLICY and self.policy else None,
            )

            if not decision.is_approved:
                task_run.tasks.append(TaskRecord(task=task, approval=approval))
                continue

            path = self.target_file(task)
            if path is None or path not in buffers:
                task.mark_failed()
                result = TransformResult.failed(
                    buffers.get(path, "") if path else "",
                    warnings=(f"targetNotFound: no source provided for {path or task.scope}",),
                )
                await self._emit(HostEventType.EXECUTION_FAILED, task, warnings=list(result.warnings))
            else:
                result = await self.execute(task, buffers[path])
                if result.success:
                    succeeded += 1
                    buffers[path] = result.transformed_source

            results[task.id] = result
            task_run.tasks.append(TaskRecord(task=task, approval=approval, result=result))

        host_result = HostRunResult(
            run_id=task_run.id,
            findings=findings,
            tasks_proposed=len(tasks),
            tasks_processed=processed,
            tasks_succeeded=succeeded,
            results=results,
            decisions=decisions,
            sources=buffers if self.config.apply_changes else dict(sources),
        )

        task_run.completed_at = utc_now()
        task_run.outcome = host_result.outcome
        if self.store is not None:
            await self.store.save(task_run)

        log_run_completed(
            run_id=task_run.id,
            project_path=task_run.project_path,
            findings=len(findings),
            tasks_proposed=len(tasks),
            tasks_processed=processed,
            tasks_succeeded=succeeded,
            outcome=task_run.outcome.value,
        )
        await self._emit(HostEventType.RUN_COMPLETED, tasks_processed=processed, tasks_succeeded=succeeded)
        return host_result
