"""
Operation catalog offered to the inference provider.

Each operation has a fixed tool name, a description shown to the model and a
pydantic model validating its arguments. The OpenAI tool schemas are derived
from those models so the executor and the provider always agree on the shape
of the arguments.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class OperationName(str, Enum):
    """Tool names of the operation catalog."""

    ADD_SECTION = "add_section"
    ADD_STEP = "add_step"
    ADD_SECTION_WITH_STEPS = "add_section_with_steps"
    RENAME_SECTION = "rename_section"
    DELETE_SECTION = "delete_section"
    DELETE_STEP = "delete_step"
    UPDATE_FLOW_TITLE = "update_flow_title"
    UPDATE_FLOW_DESCRIPTION = "update_flow_description"
    UPDATE_FLOW_LANGUAGE = "update_flow_language"
    UPDATE_FLOW_CATEGORY = "update_flow_category"
    UPDATE_STEP_DESCRIPTION = "update_step_description"
    BATCH_UPDATE_STEPS = "batch_update_steps"
    SET_STEP_TIMER = "set_step_timer"
    SET_STEP_TYPE = "set_step_type"
    SET_CHECK_BRANCHING = "set_check_branching"
    QUERY_STRUCTURE = "query_structure"


class OperationArgs(BaseModel):
    """Base class for argument models; unknown keys from the model are ignored."""

    model_config = ConfigDict(extra="ignore")


class AddSectionArgs(OperationArgs):
    title: NonEmptyStr = Field(..., description="The title of the new section")


class AddStepArgs(OperationArgs):
    description: NonEmptyStr = Field(..., description="The description/content of the step")
    section_name: Optional[str] = Field(
        default=None,
        description="The name of the section to add the step to. If not provided, adds to the first section.",
    )


class AddSectionWithStepsArgs(OperationArgs):
    section_title: NonEmptyStr = Field(..., description="The title of the new section")
    # Entries stay raw so that a malformed entry is skipped instead of failing the operation
    steps: List[Any] = Field(
        default_factory=list,
        description="List of step descriptions to add to the section",
        json_schema_extra={"items": {"type": "string"}},
    )


class RenameSectionArgs(OperationArgs):
    old_title: NonEmptyStr = Field(..., description="The current title of the section to rename")
    new_title: NonEmptyStr = Field(..., description="The new title for the section")


class DeleteSectionArgs(OperationArgs):
    section_name: NonEmptyStr = Field(..., description="The name of the section to delete")


class DeleteStepArgs(OperationArgs):
    step_description: NonEmptyStr = Field(..., description="The description of the step to delete (partial match supported)")
    section_name: Optional[str] = Field(default=None, description="The name of the section containing the step (optional)")


class UpdateFlowTitleArgs(OperationArgs):
    title: NonEmptyStr = Field(..., description="The new title for the flow")


class UpdateFlowDescriptionArgs(OperationArgs):
    description: str = Field(..., description="The new description for the flow")


class UpdateFlowLanguageArgs(OperationArgs):
    language: NonEmptyStr = Field(..., description="The new language code for the flow (ISO 639-1 format)")


class UpdateFlowCategoryArgs(OperationArgs):
    category: str = Field(..., description="The new category for the flow")


class UpdateStepDescriptionArgs(OperationArgs):
    step_identifier: NonEmptyStr = Field(..., description="The current description or partial description of the step to update")
    new_description: NonEmptyStr = Field(..., description="The new description for the step")
    section_name: Optional[str] = Field(
        default=None,
        description="Optional: The name of the section containing the step for more precise matching",
    )


class StepUpdate(OperationArgs):
    """One entry of a batch update; validated individually by the executor."""

    old_description: NonEmptyStr = Field(..., description="Current description (partial match supported)")
    new_description: NonEmptyStr = Field(..., description="New description for the step")


class BatchUpdateStepsArgs(OperationArgs):
    section_name: NonEmptyStr = Field(..., description="The name of the section containing the steps")
    # Entries stay raw so that one malformed entry only fails itself
    step_updates: List[Dict[str, Any]] = Field(
        ...,
        description="List of step updates with old and new descriptions",
        json_schema_extra={"items": StepUpdate.model_json_schema()},
    )


class SetStepTimerArgs(OperationArgs):
    step_description: NonEmptyStr = Field(..., description="The description of the step to set the timer on")
    timer_minutes: int = Field(..., ge=0, description="Timer duration in minutes (0 to remove timer, positive integer to set)")


class SetStepTypeArgs(OperationArgs):
    step_description: NonEmptyStr = Field(..., description="The description of the step to change")
    step_type: Literal["check", "normal"] = Field(
        default="check",
        description='"check" displays OK/NOK buttons for verification steps, "normal" is a plain instruction',
    )


class SetCheckBranchingArgs(OperationArgs):
    step_description: NonEmptyStr = Field(..., description="The description of the check step to configure branching for")
    ok_target_description: Optional[str] = Field(
        default=None,
        description="Description of the step to go to when user clicks OK (leave empty to go to next step)",
    )
    nok_target_description: Optional[str] = Field(
        default=None,
        description="Description of the step to go to when user clicks NOK (leave empty to go to next step)",
    )


class QueryStructureArgs(OperationArgs):
    pass


class OperationSpec(BaseModel):
    """Catalog entry: tool name, model-facing description and argument model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: OperationName
    description: str
    args_model: Type[OperationArgs]

    def tool_schema(self) -> Dict[str, Any]:
        """OpenAI function-tool definition for this operation."""
        parameters = self.args_model.model_json_schema()
        parameters.pop("title", None)
        parameters.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": parameters,
            },
        }


OPERATION_CATALOG: Dict[OperationName, OperationSpec] = {
    spec.name: spec
    for spec in [
        OperationSpec(name=OperationName.ADD_SECTION, description="Add a new section to the flow", args_model=AddSectionArgs),
        OperationSpec(
            name=OperationName.ADD_STEP,
            description=(
                "Add a new step to a section. If section_name is provided, the step will be added to that section. "
                "If section_name is not provided, the step will be added to the first section."
            ),
            args_model=AddStepArgs,
        ),
        OperationSpec(
            name=OperationName.ADD_SECTION_WITH_STEPS,
            description="Add a new section with multiple steps at once",
            args_model=AddSectionWithStepsArgs,
        ),
        OperationSpec(name=OperationName.RENAME_SECTION, description="Update the title of an existing section", args_model=RenameSectionArgs),
        OperationSpec(name=OperationName.DELETE_SECTION, description="Delete a section and all its steps", args_model=DeleteSectionArgs),
        OperationSpec(name=OperationName.DELETE_STEP, description="Delete a step from a section", args_model=DeleteStepArgs),
        OperationSpec(name=OperationName.UPDATE_FLOW_TITLE, description="Update the title of the flow", args_model=UpdateFlowTitleArgs),
        OperationSpec(
            name=OperationName.UPDATE_FLOW_DESCRIPTION,
            description="Update the description of the flow",
            args_model=UpdateFlowDescriptionArgs,
        ),
        OperationSpec(
            name=OperationName.UPDATE_FLOW_LANGUAGE,
            description='Update the language code of the flow (e.g., "en", "es", "fr", "de")',
            args_model=UpdateFlowLanguageArgs,
        ),
        OperationSpec(
            name=OperationName.UPDATE_FLOW_CATEGORY,
            description="Update the category of the flow",
            args_model=UpdateFlowCategoryArgs,
        ),
        OperationSpec(
            name=OperationName.UPDATE_STEP_DESCRIPTION,
            description="Update the description of an existing step. Matches by partial description, optionally within a section.",
            args_model=UpdateStepDescriptionArgs,
        ),
        OperationSpec(
            name=OperationName.BATCH_UPDATE_STEPS,
            description="Update multiple step descriptions in a section at once. Useful when updating all steps in a section.",
            args_model=BatchUpdateStepsArgs,
        ),
        OperationSpec(
            name=OperationName.SET_STEP_TIMER,
            description="Set or update the timer duration for a step. Timer is displayed in minutes.",
            args_model=SetStepTimerArgs,
        ),
        OperationSpec(
            name=OperationName.SET_STEP_TYPE,
            description='Change a step type. "check" displays OK/NOK buttons for quality control or verification steps.',
            args_model=SetStepTypeArgs,
        ),
        OperationSpec(
            name=OperationName.SET_CHECK_BRANCHING,
            description="Set branching behavior for a check-type step. Specify which step to go to when user clicks OK or NOK.",
            args_model=SetCheckBranchingArgs,
        ),
        OperationSpec(
            name=OperationName.QUERY_STRUCTURE,
            description="Get the current structure of the flow including all sections and steps",
            args_model=QueryStructureArgs,
        ),
    ]
}


def tool_schemas() -> List[Dict[str, Any]]:
    """All tool definitions, in catalog order, ready for ``tools=`` of a chat completion."""
    return [spec.tool_schema() for spec in OPERATION_CATALOG.values()]


def get_operation(name: str) -> Optional[OperationSpec]:
    """Look up a catalog entry by tool name; None for unknown names."""
    try:
        return OPERATION_CATALOG[OperationName(name)]
    except ValueError:
        return None
