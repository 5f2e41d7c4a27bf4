"""
Operation executor.

Applies one catalog operation to a flow and reports the outcome as an
OperationResult. Local problems (unknown operation, invalid arguments,
entity not found) never raise; they come back as unsuccessful results so a
multi-operation turn keeps processing the remaining calls.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from .debug_log import DebugLogger
from .operations import (
    AddSectionArgs,
    AddSectionWithStepsArgs,
    AddStepArgs,
    BatchUpdateStepsArgs,
    DeleteSectionArgs,
    DeleteStepArgs,
    OperationName,
    QueryStructureArgs,
    RenameSectionArgs,
    SetCheckBranchingArgs,
    SetStepTimerArgs,
    SetStepTypeArgs,
    StepUpdate,
    UpdateFlowCategoryArgs,
    UpdateFlowDescriptionArgs,
    UpdateFlowLanguageArgs,
    UpdateFlowTitleArgs,
    UpdateStepDescriptionArgs,
    get_operation,
)
from .outline import render_structure
from .resolver import EntityResolver
from .store import FlowStore, StoreError
from .types import FlowDocument, OperationResult, Step, StepType

logger = logging.getLogger(__name__)


def _validation_summary(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        parts.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


class OperationExecutor:
    """
    Executes catalog operations against a single flow.

    Args:
        flow: Flow mutated in place
        store: Persistence collaborator used to delete synthesized audio
        debug_logger: Optional trace logger for executed operations
    """

    def __init__(self, flow: FlowDocument, store: FlowStore, debug_logger: Optional[DebugLogger] = None):
        self.flow = flow
        self.store = store
        self.debug_logger = debug_logger
        self.resolver = EntityResolver(flow)
        self._handlers: Dict[OperationName, Callable[[Any], OperationResult]] = {
            OperationName.ADD_SECTION: self._add_section,
            OperationName.ADD_STEP: self._add_step,
            OperationName.ADD_SECTION_WITH_STEPS: self._add_section_with_steps,
            OperationName.RENAME_SECTION: self._rename_section,
            OperationName.DELETE_SECTION: self._delete_section,
            OperationName.DELETE_STEP: self._delete_step,
            OperationName.UPDATE_FLOW_TITLE: self._update_flow_title,
            OperationName.UPDATE_FLOW_DESCRIPTION: self._update_flow_description,
            OperationName.UPDATE_FLOW_LANGUAGE: self._update_flow_language,
            OperationName.UPDATE_FLOW_CATEGORY: self._update_flow_category,
            OperationName.UPDATE_STEP_DESCRIPTION: self._update_step_description,
            OperationName.BATCH_UPDATE_STEPS: self._batch_update_steps,
            OperationName.SET_STEP_TIMER: self._set_step_timer,
            OperationName.SET_STEP_TYPE: self._set_step_type,
            OperationName.SET_CHECK_BRANCHING: self._set_check_branching,
            OperationName.QUERY_STRUCTURE: self._query_structure,
        }

    def execute(self, name: str, arguments: Dict[str, Any]) -> OperationResult:
        """
        Validate ``arguments`` against the operation's model and apply it.

        Args:
            name: Tool name from the catalog
            arguments: Decoded tool arguments

        Returns:
            OperationResult; ``success`` is False for unknown operations,
            invalid arguments and unresolved entities
        """
        spec = get_operation(name)
        if spec is None:
            result = OperationResult(name=name, action="Unknown operation", result=f'Unknown operation "{name}"', success=False)
        else:
            try:
                args = spec.args_model.model_validate(arguments)
            except ValidationError as e:
                result = OperationResult(
                    name=name,
                    action="Invalid arguments",
                    result=f"Invalid arguments for {name}: {_validation_summary(e)}",
                    success=False,
                )
            else:
                result = self._handlers[spec.name](args)

        log = logger.info if result.success else logger.warning
        log(f"{name}: {result.result}")
        if self.debug_logger:
            self.debug_logger.log_tool_execution(name, arguments, result.model_dump())
        return result

    def execute_tool_call(self, name: str, arguments_json: Optional[str]) -> OperationResult:
        """Decode raw JSON tool arguments and execute; malformed JSON fails only this call."""
        try:
            arguments = json.loads(arguments_json) if arguments_json and arguments_json.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Malformed arguments for {name}: {e}")
            return OperationResult(name=name, action="Invalid arguments", result=f"Could not parse arguments for {name}: {e}", success=False)
        if not isinstance(arguments, dict):
            return OperationResult(name=name, action="Invalid arguments", result=f"Arguments for {name} must be a JSON object", success=False)
        return self.execute(name, arguments)

    # --- helpers ---

    def _ok(self, name: OperationName, action: str, result: str, **data: Any) -> OperationResult:
        return OperationResult(name=name.value, action=action, result=result, success=True, data=data)

    def _fail(self, name: OperationName, action: str, result: str, **data: Any) -> OperationResult:
        return OperationResult(name=name.value, action=action, result=result, success=False, data=data)

    def _section_not_found(self, name: OperationName, section_name: str) -> OperationResult:
        message = f'Could not find section "{section_name}"'
        suggestion = self.resolver.suggest_section(section_name)
        if suggestion:
            message += f'. Did you mean "{suggestion}"?'
        return self._fail(name, "Section not found", message)

    def _step_not_found(self, name: OperationName, text: str, section_name: Optional[str] = None) -> OperationResult:
        message = f'Could not find step matching "{text}"'
        if section_name:
            message += f' in section "{section_name}"'
        suggestion = self.resolver.suggest_step(text, self.resolver.resolve_section(section_name) if section_name else None)
        if suggestion:
            message += f'. Did you mean "{suggestion}"?'
        return self._fail(name, "Step not found", message)

    def _invalidate_synthesized_audio(self, step: Step) -> bool:
        """
        Delete and detach a synthesized audio asset from ``step``.

        User-supplied audio is left alone. A failed deletion is logged and the
        asset stays attached. Returns True if an asset was removed.
        """
        asset = step.audio_asset
        if asset is None or not asset.is_synthesized:
            return False
        try:
            self.store.delete_asset(self.flow.id, asset.path)
        except StoreError as e:
            logger.warning(f"Failed to delete synthesized audio {asset.path}: {e}")
            return False
        step.audio_asset = None
        logger.info(f"Deleted synthesized audio after description change: {asset.path}")
        return True

    def _change_description(self, step: Step, new_description: str) -> bool:
        self.flow.update_step(step.id, description=new_description)
        return self._invalidate_synthesized_audio(step)

    # --- handlers ---

    def _add_section(self, args: AddSectionArgs) -> OperationResult:
        section = self.flow.add_section(args.title)
        return self._ok(OperationName.ADD_SECTION, f'Added section "{args.title}"', f'Successfully added section "{args.title}"', section_id=section.id)

    def _add_step(self, args: AddStepArgs) -> OperationResult:
        section = self.resolver.resolve_section(args.section_name)
        if section is None:
            if args.section_name and args.section_name.strip():
                return self._section_not_found(OperationName.ADD_STEP, args.section_name)
            return self._fail(OperationName.ADD_STEP, "Failed to add step", f'Failed to add step "{args.description}": the flow has no sections')
        step = self.flow.add_step(section.id, args.description)
        if step is None:
            return self._fail(OperationName.ADD_STEP, "Failed to add step", f'Failed to add step "{args.description}"')
        return self._ok(
            OperationName.ADD_STEP,
            f'Added step "{args.description}"',
            f'Successfully added step "{args.description}" to section "{section.title}"',
            step_id=step.id,
        )

    def _add_section_with_steps(self, args: AddSectionWithStepsArgs) -> OperationResult:
        section = self.flow.add_section(args.section_title)
        added = []
        for description in args.steps:
            if not isinstance(description, str):
                logger.warning(f"Skipping malformed step entry {description!r}")
                continue
            if not description.strip():
                continue
            if self.flow.add_step(section.id, description) is not None:
                added.append(description)

        requested = len(args.steps)
        result = f'Successfully added section "{args.section_title}" with {len(added)} of {requested} steps'
        if added:
            result += f": {', '.join(added)}"
        return self._ok(
            OperationName.ADD_SECTION_WITH_STEPS,
            f'Added section "{args.section_title}" with {len(added)} steps',
            result,
            section_id=section.id,
            added_count=len(added),
            requested_count=requested,
        )

    def _rename_section(self, args: RenameSectionArgs) -> OperationResult:
        section = self.resolver.resolve_section(args.old_title)
        if section is None:
            return self._section_not_found(OperationName.RENAME_SECTION, args.old_title)
        self.flow.update_section(section.id, args.new_title)
        return self._ok(
            OperationName.RENAME_SECTION,
            f'Renamed section "{args.old_title}" to "{args.new_title}"',
            f'Successfully renamed section from "{args.old_title}" to "{args.new_title}"',
        )

    def _delete_section(self, args: DeleteSectionArgs) -> OperationResult:
        section = self.resolver.resolve_section(args.section_name)
        if section is None:
            return self._section_not_found(OperationName.DELETE_SECTION, args.section_name)
        removed = self.flow.delete_section(section.id) or 0
        return self._ok(
            OperationName.DELETE_SECTION,
            f'Deleted section "{section.title}"',
            f'Successfully deleted section "{section.title}" and its {removed} step(s)',
            removed_steps=removed,
        )

    def _delete_step(self, args: DeleteStepArgs) -> OperationResult:
        step = self.resolver.resolve_step_by_contains(args.step_description, args.section_name)
        if step is None:
            return self._step_not_found(OperationName.DELETE_STEP, args.step_description, args.section_name)
        self.flow.delete_step(step.id)
        return self._ok(OperationName.DELETE_STEP, f'Deleted step "{args.step_description}"', f'Successfully deleted step "{step.description}"')

    def _update_flow_title(self, args: UpdateFlowTitleArgs) -> OperationResult:
        self.flow.update_metadata(title=args.title)
        return self._ok(OperationName.UPDATE_FLOW_TITLE, f'Updated flow title to "{args.title}"', f'Successfully updated flow title to "{args.title}"')

    def _update_flow_description(self, args: UpdateFlowDescriptionArgs) -> OperationResult:
        self.flow.update_metadata(description=args.description)
        return self._ok(OperationName.UPDATE_FLOW_DESCRIPTION, "Updated flow description", "Successfully updated flow description")

    def _update_flow_language(self, args: UpdateFlowLanguageArgs) -> OperationResult:
        self.flow.update_metadata(language=args.language)
        return self._ok(
            OperationName.UPDATE_FLOW_LANGUAGE,
            f'Updated flow language to "{args.language}"',
            f'Successfully updated flow language to "{args.language}"',
        )

    def _update_flow_category(self, args: UpdateFlowCategoryArgs) -> OperationResult:
        self.flow.update_metadata(category=args.category)
        return self._ok(
            OperationName.UPDATE_FLOW_CATEGORY,
            f'Updated flow category to "{args.category}"',
            f'Successfully updated flow category to "{args.category}"',
        )

    def _update_step_description(self, args: UpdateStepDescriptionArgs) -> OperationResult:
        step = self.resolver.resolve_step_by_contains(args.step_identifier, args.section_name)
        if step is None:
            return self._step_not_found(OperationName.UPDATE_STEP_DESCRIPTION, args.step_identifier, args.section_name)
        old_description = step.description
        audio_removed = self._change_description(step, args.new_description)
        return self._ok(
            OperationName.UPDATE_STEP_DESCRIPTION,
            "Updated step description",
            f'Successfully updated step from "{old_description}" to "{args.new_description}"',
            audio_removed=audio_removed,
        )

    def _batch_update_steps(self, args: BatchUpdateStepsArgs) -> OperationResult:
        section = self.resolver.resolve_section(args.section_name)
        if section is None:
            return self._section_not_found(OperationName.BATCH_UPDATE_STEPS, args.section_name)

        updated = 0
        failed = 0
        for entry in args.step_updates:
            try:
                update = StepUpdate.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping malformed step update {entry!r}: {_validation_summary(e)}")
                failed += 1
                continue
            step = self.resolver.resolve_step_by_contains(update.old_description, section.title)
            if step is None:
                failed += 1
                continue
            self._change_description(step, update.new_description)
            updated += 1

        total = len(args.step_updates)
        data = {"updated_count": updated, "failed_count": failed}
        if updated == 0:
            return self._fail(
                OperationName.BATCH_UPDATE_STEPS,
                "Failed to update steps",
                f'Failed to update any of {total} step(s) in section "{section.title}"',
                **data,
            )
        result = f"Successfully updated {updated} of {total} step(s)"
        if failed:
            result += f". Failed: {failed}"
        return self._ok(OperationName.BATCH_UPDATE_STEPS, f'Updated {updated} step(s) in section "{section.title}"', result, **data)

    def _set_step_timer(self, args: SetStepTimerArgs) -> OperationResult:
        step = self.resolver.resolve_step_by_exact(args.step_description)
        if step is None:
            return self._step_not_found(OperationName.SET_STEP_TIMER, args.step_description)
        self.flow.update_step(step.id, timer_duration_minutes=args.timer_minutes)
        if args.timer_minutes == 0:
            return self._ok(
                OperationName.SET_STEP_TIMER,
                f'Removed timer from step "{args.step_description}"',
                f'Successfully removed timer from step "{args.step_description}"',
            )
        return self._ok(
            OperationName.SET_STEP_TIMER,
            f'Set timer on step "{args.step_description}" to {args.timer_minutes} minutes',
            f'Successfully set timer on step "{args.step_description}" to {args.timer_minutes} minutes',
        )

    def _set_step_type(self, args: SetStepTypeArgs) -> OperationResult:
        step = self.resolver.resolve_step_by_exact(args.step_description)
        if step is None:
            return self._step_not_found(OperationName.SET_STEP_TYPE, args.step_description)
        step_type = StepType(args.step_type)
        if step_type == StepType.NORMAL:
            # Branch targets only mean something on check steps
            self.flow.update_step(step.id, type=step_type, ok_next=None, nok_next=None)
            return self._ok(
                OperationName.SET_STEP_TYPE,
                f'Changed step "{args.step_description}" to normal type',
                f'Successfully changed step "{args.step_description}" to normal type and cleared its branching',
            )
        self.flow.update_step(step.id, type=step_type)
        return self._ok(
            OperationName.SET_STEP_TYPE,
            f'Changed step "{args.step_description}" to check type',
            f'Successfully changed step "{args.step_description}" to check type with OK/NOK buttons',
        )

    def _resolve_branch(self, label: str, target: Optional[str]) -> Tuple[Optional[str], str]:
        """Returns (step id or None, human description of the branch)."""
        if target is None or not target.strip():
            return None, f"{label} -> next step"
        step = self.resolver.resolve_step_by_exact(target)
        if step is None:
            return None, f'{label} -> next step (target "{target}" not found)'
        return step.id, f'{label} -> "{step.description}"'

    def _set_check_branching(self, args: SetCheckBranchingArgs) -> OperationResult:
        step = self.resolver.resolve_step_by_exact(args.step_description)
        if step is None:
            return self._step_not_found(OperationName.SET_CHECK_BRANCHING, args.step_description)
        ok_id, ok_info = self._resolve_branch("OK", args.ok_target_description)
        nok_id, nok_info = self._resolve_branch("NOK", args.nok_target_description)
        self.flow.update_step(step.id, type=StepType.CHECK, ok_next=ok_id, nok_next=nok_id)
        return self._ok(
            OperationName.SET_CHECK_BRANCHING,
            f'Set branching for step "{args.step_description}"',
            f'Successfully set branching for step "{args.step_description}": {ok_info}, {nok_info}',
            ok_next=ok_id,
            nok_next=nok_id,
        )

    def _query_structure(self, args: QueryStructureArgs) -> OperationResult:
        structure = render_structure(self.flow) or "(empty flow)"
        return self._ok(OperationName.QUERY_STRUCTURE, "Retrieved flow structure", structure)
