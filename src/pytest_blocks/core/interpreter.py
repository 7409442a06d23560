"""Step interpreter.

The interpreter walks step trees. For every step it dispatches the block
type to a descriptor, resolves the step parameters (evaluating nested value
steps depth-first and passing literal text through the variable resolver),
invokes the block executor and interprets its output: plain values are the
step output, control signals make the interpreter run statement slots or
synthetic step lists on the step's behalf.

A failing step stops the statement list it belongs to. Failures propagate
to the enclosing step through branch, loop, expansion and procedure frames
until a try/catch block handles them or they reach the top of the list.
Failures never escape as exceptions from `run_step` / `run_steps`; they are
captured in `StepResult` records.
"""

import logging
from inspect import isawaitable
from time import perf_counter
from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import BlockRuntimeError, LeafExecutionError, ResolveError, SkipStep
from pytest_blocks.resolver import VariableResolver
from pytest_blocks.schema import (
    Branch,
    CollectionLoop,
    CountedLoop,
    ErrorInfo,
    InlineExpand,
    ProcedureCall,
    ProcedureDefine,
    ProcedureReturn,
    Status,
    StepNode,
    StepResult,
    TryCatch,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.core.registry import BlockRegistry
    from pytest_blocks.extensions import PluginHooks
    from pytest_blocks.schema import BlockDescriptor

#: Collaborator hook producing a failure artifact (for example, a page
#: screenshot) for a failed step. May be a coroutine function.
type ArtifactHook = Callable[[StepNode, 'ExecutionContext', BaseException | None], Any | Awaitable[Any]]

logger = logging.getLogger(__name__)


async def invoke_hooks(hooks: 'Iterable[PluginHooks]', name: str, **kwargs: Any) -> None:  # noqa: ANN401
    """Invoke a lifecycle hook of every plugin, in registration order.

    Args:
        hooks: Plugin hooks.
        name: Hook name, for example `before_step`.
        **kwargs: Arguments passed to the hook.
    """
    for item in hooks:
        if (hook := getattr(item, name, None)) is None:
            continue
        result = hook(**kwargs)
        if isawaitable(result):
            await result


class StepInterpreter:
    """Evaluates step trees against a block registry."""

    def __init__(self, blocks: 'BlockRegistry', *,
                 hooks: 'Sequence[PluginHooks]' = (),
                 artifact_hook: ArtifactHook | None = None) -> None:
        """Initialize the interpreter.

        Args:
            blocks: Registry used to dispatch block types.
            hooks: Plugin hooks invoked around statement steps.
            artifact_hook: Collaborator producing failure artifacts.
        """
        self.blocks = blocks
        self.hooks = tuple(hooks)
        self.artifact_hook = artifact_hook

    async def run_steps(self, steps: 'Iterable[StepNode]',
                        context: 'ExecutionContext') -> list[StepResult]:
        """Run a statement list.

        Steps run strictly in order. The list stops after the first step
        that fails (other than a collected soft assertion), is skipped or
        performs a procedure return.

        Args:
            steps: Statement list.
            context: Execution context.

        Returns:
            Results of the steps that were run.
        """
        results = []
        for step in steps:
            result = await self.run_step(step, context)
            results.append(result)
            if result.fatal or result.returned or result.status == Status.SKIPPED:
                break

        return results

    async def run_step(self, step: StepNode, context: 'ExecutionContext', *,
                       nested: bool = False) -> StepResult:
        """Run one step and capture its outcome.

        Args:
            step: Step to run.
            context: Execution context.
            nested: The step produces a parameter value of another step;
                step hooks are not invoked for it.

        Returns:
            Result of the step.
        """
        result = StepResult(step_id=step.id, step_type=step.type)
        previous = context.current_step
        started = perf_counter()

        try:
            context.raise_if_cancelled()
            if not nested:
                await invoke_hooks(self.hooks, 'before_step', step=step, context=context)
            result.output = await self._evaluate(step, context, result)

        except SkipStep as skip:
            result.status = Status.SKIPPED
            result.error = ErrorInfo(message=skip.reason, code='skipped')
            result.exception = skip

        except BlockRuntimeError as error:
            self._fail(result, error, step, context)

        except Exception as base:  # noqa: BLE001
            error = LeafExecutionError.from_exception(base)
            self._fail(result, error, step, context)

        finally:
            context.current_step = previous
            result.duration = (perf_counter() - started) * 1000

        if result.status == Status.FAILED and not result.soft:
            await self._attach_artifact(step, context, result)

        if not nested:
            try:
                await invoke_hooks(self.hooks, 'after_step', step=step, context=context, result=result)
            except Exception:
                context.logger.exception('Hook after_step failed for step %s', step.id)

        return result

    async def evaluate(self, step: StepNode, context: 'ExecutionContext') -> Any:  # noqa: ANN401
        """Evaluate a step and return its output.

        Args:
            step: Step to evaluate.
            context: Execution context.

        Returns:
            The step output.

        Raises:
            BlockRuntimeError: If the step fails.
            SkipStep: If the step requests the test to be skipped.
        """
        result = await self.run_step(step, context, nested=True)
        if (result.fatal or result.status == Status.SKIPPED) and result.exception is not None:
            raise result.exception

        return result.output

    async def resolve_params(self, step: StepNode, descriptor: 'BlockDescriptor',
                             context: 'ExecutionContext',
                             result: StepResult | None = None) -> dict[str, Any]:
        """Resolve the parameters of a step.

        Declared inputs are resolved in declaration order, then any
        undeclared parameters in step order. Nested steps are evaluated
        exactly once and replaced by their output; literal text passes
        through the variable resolver; absent inputs take their declared
        default. Statement slots are left to the control signals.

        Args:
            step: Step whose parameters are resolved.
            descriptor: Block descriptor of the step.
            context: Execution context.
            result: Result receiving nested step results, if any.

        Returns:
            Mapping of input names to resolved values.

        Raises:
            ResolveError: If a required input is missing.
            BlockRuntimeError: If a nested step fails.
        """
        declared = {item.name: item for item in descriptor.parameter_inputs}
        statements = set(descriptor.statement_inputs)

        names = [*declared]
        names.extend(
            name
            for name in step.params
            if name not in declared and name not in statements
        )

        params: dict[str, Any] = {}
        for name in names:
            if name not in step.params:
                item = declared[name]
                if item.required and item.default is None:
                    raise ResolveError(f'Missing required input {name!r} of {step.type!r}')
                params[name] = VariableResolver.resolve_object(item.default, context)
                continue

            value = step.params[name]
            if isinstance(value, StepNode):
                nested = await self.run_step(value, context, nested=True)
                if result is not None:
                    result.inputs[name] = nested
                if nested.fatal or nested.status == Status.SKIPPED:
                    raise nested.exception or ResolveError(f'Input {name!r} failed')
                params[name] = nested.output
            else:
                params[name] = VariableResolver.resolve_object(value, context)

        return params

    async def _evaluate(self, step: StepNode, context: 'ExecutionContext',
                        result: StepResult) -> Any:  # noqa: ANN401
        """Dispatch, resolve, invoke and interpret one step."""
        descriptor = self.blocks.require(step.type)
        params = await self.resolve_params(step, descriptor, context, result)

        context.current_step = step
        collected = len(context.soft_errors)

        output = await descriptor.execute(params, context)

        if len(context.soft_errors) > collected:
            result.status = Status.FAILED
            result.soft = True
            result.error = ErrorInfo(
                message=context.soft_errors[-1].message,
                code='soft_assertion',
            )

        return await self._interpret(step, output, context, result)

    async def _interpret(self, step: StepNode, output: Any,  # noqa: ANN401, C901, PLR0911, PLR0912
                         context: 'ExecutionContext', result: StepResult) -> Any:
        """Perform the control-flow work requested by a control signal."""
        if isinstance(output, Branch):
            await self._run_body(step.slot(output.slot), context, result)
            return result.output

        if isinstance(output, CountedLoop):
            for _ in range(output.times):
                await self._run_body(step.slot(output.slot), context, result)
                if result.returned:
                    break
            return result.output

        if isinstance(output, CollectionLoop):
            for index, item in enumerate(output.items):
                context.set_variable(output.binding, item)
                if output.index_binding:
                    context.set_variable(output.index_binding, index)
                await self._run_body(step.slot(output.slot), context, result)
                if result.returned:
                    break
            return result.output

        if isinstance(output, TryCatch):
            attempt = await self.run_steps(step.slot(output.try_slot), context)
            failure = next((item for item in attempt if item.fatal), None)
            if failure is None:
                self._adopt(attempt, result)
                return result.output

            result.children.extend(attempt)
            context.logger.info('Caught failure of step %s: %s', failure.step_id,
                                failure.error.message if failure.error else 'unknown error')
            if output.error_binding:
                context.set_variable(
                    output.error_binding,
                    failure.error.message if failure.error else None,
                )
            await self._run_body(step.slot(output.catch_slot), context, result)
            return result.output

        if isinstance(output, InlineExpand):
            if not output.frame:
                for key, value in output.bindings.items():
                    context.set_variable(key, value)
                await self._run_body(output.steps, context, result)
                return result.output
            return await self._run_frame(
                output.steps,
                context,
                result,
                expect_return=True,
                bindings=output.bindings,
            )

        if isinstance(output, ProcedureCall):
            bindings = {
                key: VariableResolver.resolve_object(value, context)
                for key, value in output.args.items()
            }
            context.logger.info('Calling procedure %s', output.name)
            return await self._run_frame(
                output.procedure.steps,
                context,
                result,
                expect_return=output.expect_return,
                bindings=bindings,
            )

        if isinstance(output, ProcedureReturn):
            if context.call_depth == 0:
                context.logger.warning('Procedure return outside of a procedure call is ignored')
                return output.value
            result.returned = True
            return output.value

        if isinstance(output, ProcedureDefine):
            definition = output.build(step)
            context.procedures.define(definition.name, definition)
            context.logger.debug('Defined procedure %s(%s)', definition.name,
                                 ', '.join(definition.param_names))
            return None

        return output

    async def _run_body(self, steps: 'Iterable[StepNode]',
                        context: 'ExecutionContext', result: StepResult) -> None:
        """Run a statement list on behalf of a step and propagate its outcome."""
        self._adopt(await self.run_steps(steps, context), result)

    async def _run_frame(self, steps: 'Iterable[StepNode]', context: 'ExecutionContext',
                         result: StepResult, *, expect_return: bool,
                         bindings: 'Mapping[str, Any] | None' = None) -> Any:  # noqa: ANN401
        """Run a procedure body as a call frame.

        A procedure return inside the body stops it; its value becomes the
        frame output when a return is expected and is discarded otherwise.

        Arguments are bound for the duration of the body only: afterwards
        the caller's bindings of the same names are restored, and names the
        caller did not have are removed.
        """
        bindings = bindings or {}
        saved = {
            name: context.variables[name]
            for name in bindings
            if name in context.variables
        }

        for name, value in bindings.items():
            context.set_variable(name, value)

        context.call_depth += 1
        try:
            children = await self.run_steps(steps, context)
        finally:
            context.call_depth -= 1
            for name in bindings:
                if name in saved:
                    context.variables[name] = saved[name]
                else:
                    context.variables.pop(name, None)

        result.children.extend(children)
        self._raise_for(children)

        returned = next((item for item in children if item.returned), None)
        if returned is not None and expect_return:
            return returned.output

        return None

    def _adopt(self, children: list[StepResult], result: StepResult) -> None:
        """Record child results and propagate failures, skips and returns."""
        result.children.extend(children)
        self._raise_for(children)

        for child in children:
            if child.returned:
                result.returned = True
                result.output = child.output

    @staticmethod
    def _raise_for(children: list[StepResult]) -> None:
        """Re-raise the failure or skip of the first failed or skipped child, if any."""
        for child in children:
            if (child.fatal or child.status == Status.SKIPPED) and child.exception is not None:
                raise child.exception

    @staticmethod
    def _fail(result: StepResult, error: BlockRuntimeError,
              step: StepNode, context: 'ExecutionContext') -> None:
        """Mark a result failed with an error located at the step."""
        error.with_context(
            step_id=step.id,
            step_type=step.type,
            test_name=context.test_name,
            data_iteration=context.data_index,
        )

        result.status = Status.FAILED
        result.soft = False
        result.error = ErrorInfo.from_exception(error)
        result.exception = error

    async def _attach_artifact(self, step: StepNode, context: 'ExecutionContext',
                               result: StepResult) -> None:
        """Offer the artifact hook a chance to document a failed step."""
        if self.artifact_hook is None:
            return

        descriptor = self.blocks.lookup(step.type)
        if descriptor is None or not descriptor.snapshot_on_failure:
            return

        try:
            artifact = self.artifact_hook(step, context, result.exception)
            if isawaitable(artifact):
                artifact = await artifact
        except Exception:
            context.logger.exception('Failed to capture artifact for step %s', step.id)
            return

        result.artifact = artifact
