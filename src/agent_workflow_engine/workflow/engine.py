"""The workflow engine: bootstrap, round loop and final phase over a persisted scope.

The scope is written to the state file after every mutation that has to
survive a crash. Resuming from that file re-executes the step that was in
flight and nothing that completed before it.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from agent_workflow_engine.executors.base import PromptExecutor
from agent_workflow_engine.workflow.definition import (
    Outcome,
    RoundDefinition,
    Step,
    WorkflowDefinition,
)
from agent_workflow_engine.workflow.scope import (
    BOOTSTRAP_COMPLETE,
    FINAL_COMPLETE,
    RoundLogEntry,
    RunInfo,
    StepResult,
    TemplateScope,
)
from agent_workflow_engine.workflow.state_store import ScopeStore
from agent_workflow_engine.workflow.templating import render_template
from agent_workflow_engine.workflow.transitions import resolve_transition

logger = logging.getLogger(__name__)

DEFAULT_AGENT = "build"
DONE_OUTCOME = "done"
CYCLE_FACTOR = 3

_JSON_FENCE = re.compile(r"```json\s*\n([\s\S]*?)\n\s*```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class WorkflowError(RuntimeError):
    """Base class for fatal workflow engine errors."""


class StepNotFoundError(WorkflowError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Step {key} not found")
        self.key = key


class CycleLimitExceededError(WorkflowError):
    def __init__(self, limit: int) -> None:
        super().__init__("Workflow cycle limit exceeded")
        self.limit = limit


class WorkflowResult(BaseModel):
    outcome: str
    reason: str
    bootstrap: dict[str, StepResult] | None = None
    rounds: list[RoundLogEntry] = Field(default_factory=list)
    final: dict[str, StepResult] | None = None


def parse_step_output(raw: str, *, force: bool = False) -> Any:
    """Best-effort JSON extraction from an agent reply.

    Parsing is attempted when `force` is set (the role declares a parser), when
    the reply starts with ``{`` or when it contains a fenced json block. Any
    decode failure returns `raw` unchanged.
    """

    if not (force or raw.strip().startswith("{") or "```json" in raw):
        return raw

    fenced = _JSON_FENCE.search(raw)
    if fenced:
        candidate = fenced.group(1)
    else:
        braced = _JSON_OBJECT.search(raw)
        candidate = braced.group(0) if braced else raw

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        logger.debug("Step output is not valid JSON; keeping raw text")
        return raw


class WorkflowEngine:
    """Runs workflow definitions against a prompt executor."""

    def __init__(self, executor: PromptExecutor, *, default_agent: str = DEFAULT_AGENT) -> None:
        self._executor = executor
        self._default_agent = default_agent

    def run(
        self,
        definition: WorkflowDefinition,
        inputs: Mapping[str, Any] | None = None,
        state_path: Path | str | None = None,
    ) -> WorkflowResult:
        """Run (or resume) a workflow to its outcome.

        Args:
            definition: A validated workflow definition.
            inputs: User inputs, merged over the definition's `user` defaults.
                ``runId`` names the run.
            state_path: File used both to resume from and to persist to.

        Returns:
            The outcome, its reason rendered against the finished scope,
            bootstrap/final results and the per-round log.
        """

        store = ScopeStore(Path(state_path)) if state_path is not None else None
        scope = store.load() if store is not None else None

        if scope is None:
            scope = self._new_scope(definition, dict(inputs or {}))
            logger.info(
                "Starting workflow run",
                extra={"run_id": scope.run.id, "workflow": definition.id},
            )
        else:
            logger.info(
                "Resuming workflow run",
                extra={
                    "run_id": scope.run.id,
                    "workflow": definition.id,
                    "round": scope.round,
                    "step": scope.current_step_key,
                },
            )

        def persist() -> None:
            if store is not None:
                store.save(scope)

        persist()

        self._run_bootstrap(definition, scope, persist)

        outcome = self._run_rounds(definition, scope, persist)
        if outcome is None:
            outcome = definition.flow.round.default_outcome
            logger.info(
                "No outcome after max rounds; using default",
                extra={"run_id": scope.run.id, "outcome": outcome.outcome},
            )
            scope.outcome = outcome
            persist()

        if outcome.outcome == DONE_OUTCOME:
            self._run_final(definition, scope, persist)

        reason = render_template(outcome.reason, scope.template_context())
        logger.info(
            "Workflow run finished",
            extra={"run_id": scope.run.id, "outcome": outcome.outcome},
        )
        return WorkflowResult(
            outcome=outcome.outcome,
            reason=reason,
            bootstrap=scope.bootstrap,
            rounds=list(scope.rounds_log),
            final=scope.final,
        )

    def _new_scope(self, definition: WorkflowDefinition, inputs: dict[str, Any]) -> TemplateScope:
        run_id = str(inputs.get("runId") or f"req-{int(time.time() * 1000)}")
        scope = TemplateScope(
            user={**definition.user, **inputs},
            run=RunInfo(id=run_id),
            state=dict(definition.state.initial),
            round=0,
            max_rounds=definition.flow.round.max_rounds,
        )
        for key in definition.state.initial:
            scope.state[key] = render_template(scope.state[key], scope.template_context())
        return scope

    def _run_bootstrap(
        self,
        definition: WorkflowDefinition,
        scope: TemplateScope,
        persist: Callable[[], None],
    ) -> None:
        steps = definition.flow.bootstrap
        if not steps:
            return

        if scope.flag(BOOTSTRAP_COMPLETE):
            if scope.bootstrap:
                scope.current = list(scope.bootstrap.values())[-1]
            logger.info("Bootstrap already complete", extra={"run_id": scope.run.id})
            return

        # No per-step resume: an interrupted bootstrap starts over from its first step.
        logger.info("Running bootstrap phase", extra={"run_id": scope.run.id})
        scope.bootstrap = {}
        self._run_phase(steps, scope.bootstrap, definition, scope, persist)
        scope.set_flag(BOOTSTRAP_COMPLETE)
        persist()

    def _run_final(
        self,
        definition: WorkflowDefinition,
        scope: TemplateScope,
        persist: Callable[[], None],
    ) -> None:
        steps = definition.flow.final
        if not steps or scope.flag(FINAL_COMPLETE):
            return

        logger.info("Running final phase", extra={"run_id": scope.run.id})
        scope.final = {}
        self._run_phase(steps, scope.final, definition, scope, persist)
        scope.set_flag(FINAL_COMPLETE)
        persist()

    def _run_phase(
        self,
        steps: list[Step],
        results: dict[str, StepResult],
        definition: WorkflowDefinition,
        scope: TemplateScope,
        persist: Callable[[], None],
    ) -> None:
        for step in steps:
            result = self.execute_step(step, scope, definition)
            results[step.key] = result
            scope.current = result
            self._apply_state_updates(step.state_updates, scope)
            persist()

    def _run_rounds(
        self,
        definition: WorkflowDefinition,
        scope: TemplateScope,
        persist: Callable[[], None],
    ) -> Outcome | None:
        if scope.outcome is not None:
            logger.info(
                "Outcome already recorded; skipping rounds",
                extra={"run_id": scope.run.id, "outcome": scope.outcome.outcome},
            )
            return scope.outcome

        start_round = max(scope.round, 1)
        if scope.current_step_key is None and scope.is_round_logged(start_round):
            # That round finished before the previous run stopped.
            start_round += 1

        for round_number in range(start_round, scope.max_rounds + 1):
            if round_number != scope.round:
                scope.round = round_number
                scope.steps = {}
                scope.current_step_key = None

            logger.info(
                "Starting round",
                extra={
                    "run_id": scope.run.id,
                    "round": round_number,
                    "max_rounds": scope.max_rounds,
                },
            )
            outcome = self._run_round(definition.flow.round, definition, scope, persist)

            scope.record_round(round_number)
            scope.current_step_key = None
            scope.outcome = outcome
            persist()

            if outcome is not None:
                return outcome

        return None

    def _run_round(
        self,
        round_def: RoundDefinition,
        definition: WorkflowDefinition,
        scope: TemplateScope,
        persist: Callable[[], None],
    ) -> Outcome | None:
        step_key: str | None = scope.current_step_key or round_def.steps[0].key
        max_iterations = len(round_def.steps) * CYCLE_FACTOR
        iterations = 0

        while step_key is not None:
            iterations += 1
            if iterations > max_iterations:
                raise CycleLimitExceededError(max_iterations)

            step = definition.find_round_step(step_key)
            if step is None:
                raise StepNotFoundError(step_key)

            scope.current_step_key = step.key
            persist()

            result = self.execute_step(step, scope, definition)
            scope.steps[step.key] = result
            scope.current = result
            self._apply_state_updates(step.state_updates, scope)

            context = scope.template_context()
            step_json = result.model_dump(mode="json")
            transition = resolve_transition(step.transitions, context, step_json)
            if transition is None:
                transition = resolve_transition(step.exits, context, step_json)

            next_key: str | None = None
            if transition is not None:
                self._apply_state_updates(transition.state_updates, scope)
                if transition.outcome:
                    reason = transition.reason
                    if reason is None:
                        reason = transition.outcome
                    logger.info(
                        "Step produced outcome",
                        extra={
                            "run_id": scope.run.id,
                            "step": step.key,
                            "outcome": transition.outcome,
                        },
                    )
                    return Outcome(outcome=transition.outcome, reason=reason)
                next_key = transition.next_step

            if next_key is None:
                next_key = step.next or _following_step_key(round_def.steps, step.key)
            if next_key is None:
                return None

            logger.debug(
                "Advancing to step",
                extra={"run_id": scope.run.id, "step": step.key, "next_step": next_key},
            )
            scope.current_step_key = next_key
            persist()
            step_key = next_key

        return None

    def execute_step(
        self, step: Step, scope: TemplateScope, definition: WorkflowDefinition
    ) -> StepResult:
        """Render a step's prompt, run it through the executor and parse the reply."""

        context = scope.template_context()
        rendered = "\n\n".join(
            render_template(section, context) for section in step.prompt_sections
        )

        role = definition.roles.get(step.role)
        prompt = rendered
        if role is not None and role.system_prompt:
            prompt = f"SYSTEM INSTRUCTIONS:\n{role.system_prompt}\n\nUSER REQUEST:\n{rendered}"

        agent = step.agent or self._default_agent
        logger.info(
            "Executing step",
            extra={"run_id": scope.run.id, "step": step.key, "role": step.role, "agent": agent},
        )
        tools = role.tools if role is not None and role.tools else None
        raw = self._executor.execute(agent, prompt, tools=tools)
        parsed = parse_step_output(raw, force=bool(role is not None and role.parser))

        return StepResult(key=step.key, role=step.role, raw=raw, parsed=parsed)

    def _apply_state_updates(self, updates: Mapping[str, str], scope: TemplateScope) -> None:
        for key, template in updates.items():
            scope.state[key] = render_template(template, scope.template_context())


def _following_step_key(steps: list[Step], key: str) -> str | None:
    for idx, step in enumerate(steps):
        if step.key == key:
            return steps[idx + 1].key if idx + 1 < len(steps) else None
    return None
