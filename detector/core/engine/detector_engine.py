"""
Keyed detector engine.

This module contains the stateful engine that routes readings to per-key
:class:`DetectorInstance` objects and advances them through a shared,
immutable :class:`DetectorModel`:

- first reading for a key creates the instance and runs the initial state's
  ``onEnter`` rules,
- ``onInput`` rules run in declaration order; the first transition rule whose
  guard holds wins,
- a transition runs the departing state's ``onExit`` rules, then the arriving
  state's ``onEnter`` rules.

The engine performs no I/O. Executed actions are returned to the caller, who
hands them to the notification layer after :meth:`DetectorEngine.process`
returns.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from detector.core.engine.instance import DetectorInstance
from detector.core.expression.nodes import EvaluationScope
from detector.core.model.definition import DetectorModel, EventRule, Notify, SetVariable, State
from detector.domain.events import (
    ExecutedAction,
    NotificationAction,
    ProcessResult,
    StateTransition,
    VariableSet,
)
from detector.domain.models import DetectorSnapshot, EvaluationMethod, EventPhase, Reading

logger = logging.getLogger(__name__)


class _Evaluation:
    """
    One reading applied to one instance.

    Holds the scope shared by every rule of the reading and collects executed
    actions in order. Must only be used while the instance lock is held.
    """

    def __init__(
        self,
        model: DetectorModel,
        instance: DetectorInstance,
        attributes: Mapping[str, Any],
        input_name: Optional[str],
    ):
        self._model = model
        self._instance = instance
        self._input_name = input_name
        # The scope wraps the live variable dict, so writes are seen immediately.
        self._scope = EvaluationScope(attributes=attributes, variables=instance.variables, input_name=input_name)
        self.actions: List[ExecutedAction] = []

    def run_rules(self, state: State, rules: Tuple[EventRule, ...], phase: EventPhase) -> None:
        for rule in rules:
            if rule.condition.holds(self._scope):
                self._run_actions(rule, state.name, phase)

    def run_input(self, state: State) -> Optional[EventRule]:
        """Run ``onInput`` rules and return the selected transition rule, if any."""
        guard_scope = self._scope
        if self._model.evaluation_method is EvaluationMethod.BATCH:
            guard_scope = EvaluationScope(
                attributes=self._scope.attributes,
                variables=dict(self._instance.variables),
                input_name=self._input_name,
            )

        for rule in state.on_input:
            if not rule.condition.holds(guard_scope):
                continue
            self._run_actions(rule, state.name, EventPhase.INPUT)
            if rule.is_transition:
                return rule
        return None

    def _run_actions(self, rule: EventRule, state_name: str, phase: EventPhase) -> None:
        for action in rule.actions:
            if isinstance(action, SetVariable):
                self.actions.append(self._set_variable(action, rule, state_name, phase))
            elif isinstance(action, Notify):
                self.actions.append(self._notify(action, rule, state_name, phase))

    def _set_variable(self, action: SetVariable, rule: EventRule, state_name: str, phase: EventPhase) -> VariableSet:
        raw = action.expression.evaluate(self._scope)
        value: Optional[float] = None
        if isinstance(raw, (bool, int, float)) and math.isfinite(raw):
            value = float(raw)
            self._instance.variables[action.variable_name] = value
        else:
            logger.debug(
                "Detector %s: %s=%r is unavailable, variable left unchanged",
                self._instance.key,
                action.variable_name,
                action.value_text,
            )
        return VariableSet(
            event_name=rule.name,
            state_name=state_name,
            phase=phase,
            variable_name=action.variable_name,
            value=value,
        )

    def _notify(self, action: Notify, rule: EventRule, state_name: str, phase: EventPhase) -> NotificationAction:
        if action.payload is not None:
            payload: Any = action.payload.render(self._scope)
        else:
            payload = {
                "detectorModelName": self._model.name,
                "keyValue": self._instance.key,
                "eventName": rule.name,
                "actionType": action.action_type,
                "target": action.target,
                "phase": phase.value,
                "inputName": self._input_name,
                "state": {
                    "stateName": state_name,
                    "variables": dict(self._instance.variables),
                },
            }
        return NotificationAction(
            event_name=rule.name,
            state_name=state_name,
            phase=phase,
            action_type=action.action_type,
            target=action.target,
            payload=payload,
        )


class DetectorEngine:
    """
    Owner of all detector instances for one model.

    Concurrency Model
    -----------------
    - ``_lock`` guards only the key -> instance mapping and is held briefly.
    - Each instance has its own lock, held for the whole evaluation of one
      reading. Readings for one key are serialized; readings for different
      keys run in parallel.
    - Callers that need arrival order per key must deliver readings for a key
      from a single thread (see ``DetectorWorkerPool``).

    Parameters
    ----------
    model
        Validated, immutable detector model.
    """

    def __init__(self, model: DetectorModel):
        self._model = model
        self._instances: Dict[str, DetectorInstance] = {}
        self._lock = threading.Lock()

    @property
    def model(self) -> DetectorModel:
        return self._model

    @property
    def instance_count(self) -> int:
        with self._lock:
            return len(self._instances)

    def process(
        self,
        key: str,
        attributes: Mapping[str, Any],
        input_name: Optional[str] = None,
    ) -> ProcessResult:
        """
        Apply one reading to the detector instance for ``key``.

        Parameters
        ----------
        key
            Detector key. Unknown keys create a new instance.
        attributes
            Flattened reading attributes. Attributes not declared by the
            model input are ignored.
        input_name
            Input the reading belongs to. Defaults to the model's only input.

        Returns
        -------
        ProcessResult
            Executed actions (in execution order), transition and the
            resulting state.
        """
        input_name = input_name or self._model.default_input_name
        visible = self._select_attributes(attributes, input_name)
        instance = self._get_or_create(key)

        with instance.lock:
            ev = _Evaluation(self._model, instance, visible, input_name)

            created = not instance.initialized
            if created:
                # Marked first so a failing rule can never re-run the initial onEnter.
                instance.initialized = True
                initial = self._model.state(instance.state_name)
                ev.run_rules(initial, initial.on_enter, EventPhase.ENTER)

            state = self._model.state(instance.state_name)
            rule = ev.run_input(state)

            transition: Optional[StateTransition] = None
            if rule is not None and rule.next_state is not None:
                ev.run_rules(state, state.on_exit, EventPhase.EXIT)
                instance.state_name = rule.next_state
                arriving = self._model.state(rule.next_state)
                ev.run_rules(arriving, arriving.on_enter, EventPhase.ENTER)
                transition = StateTransition(event_name=rule.name, from_state=state.name, to_state=arriving.name)

            result = ProcessResult(
                key=key,
                input_name=input_name,
                created=created,
                state_name=instance.state_name,
                variables=dict(instance.variables),
                actions=tuple(ev.actions),
                transition=transition,
            )

        if transition is not None:
            logger.info(
                "Detector %s/%s: %s -> %s (%s)",
                self._model.name,
                key,
                transition.from_state,
                transition.to_state,
                transition.event_name,
            )
        return result

    def process_reading(self, reading: Reading) -> ProcessResult:
        return self.process(reading.key, reading.attributes, reading.input_name)

    def get_instance(self, key: str) -> Optional[DetectorSnapshot]:
        """Snapshot of the instance for ``key``, or None if never seen."""
        with self._lock:
            instance = self._instances.get(key)
        if instance is None:
            return None
        with instance.lock:
            return instance.snapshot()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._instances)

    def snapshots(self) -> List[DetectorSnapshot]:
        with self._lock:
            instances = list(self._instances.values())
        out = []
        for instance in instances:
            with instance.lock:
                out.append(instance.snapshot())
        return out

    def _get_or_create(self, key: str) -> DetectorInstance:
        with self._lock:
            instance = self._instances.get(key)
            if instance is not None:
                return instance
            instance = DetectorInstance(key=key, state_name=self._model.initial_state_name)
            self._instances[key] = instance
        logger.debug("Detector %s/%s created in state %s", self._model.name, key, instance.state_name)
        return instance

    def _select_attributes(self, attributes: Mapping[str, Any], input_name: Optional[str]) -> Mapping[str, Any]:
        if not self._model.inputs:
            return dict(attributes)
        inp = self._model.input(input_name)
        if inp is not None:
            return inp.select(attributes)
        if input_name is None:
            declared = {a for i in self._model.inputs for a in i.attributes}
            return {k: v for k, v in attributes.items() if k in declared}
        logger.warning("Reading for unknown input %r ignored by model %r", input_name, self._model.name)
        return {}
