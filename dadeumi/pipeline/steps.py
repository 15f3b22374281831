"""Table of built-in translation steps.

Responsibilities:
- Describe every step as data: prompt builder, outputs, prerequisites, and inputs.
- Keep step ids and artifact numbers as independent sequences.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..llm.prompts import PromptLibrary
from ..models.datatypes import (
    ArtifactKey,
    ArtifactSpec,
    PromptContext,
    StepDescriptor,
    StepId,
)

ANALYSIS = ArtifactSpec(
    ArtifactKey.ANALYSIS, "analysis", "01_initial_analysis.txt", "Initial Analysis"
)
EXPRESSION_EXPLORATION = ArtifactSpec(
    ArtifactKey.EXPRESSION_EXPLORATION,
    "expression_exploration",
    "02_expression_exploration.txt",
    "Expression Exploration",
)
CULTURAL_DISCUSSION = ArtifactSpec(
    ArtifactKey.CULTURAL_DISCUSSION,
    "cultural_discussion",
    "03_cultural_adaptation_discussion.txt",
    "Cultural Adaptation Discussion",
)
TITLE_OPTIONS = ArtifactSpec(
    ArtifactKey.TITLE_OPTIONS,
    "title_options",
    "04_title_inspiration_exploration.txt",
    "Title & Inspiration Exploration",
)
FIRST_TRANSLATION = ArtifactSpec(
    ArtifactKey.FIRST_TRANSLATION,
    "first_translation",
    "05_first_translation.txt",
    "First Translation",
    deliverable=True,
)
CRITIQUE = ArtifactSpec(ArtifactKey.CRITIQUE, "critique", "06_self_critique.txt", "Self-Critique")
IMPROVED_TRANSLATION = ArtifactSpec(
    ArtifactKey.IMPROVED_TRANSLATION,
    "improved_translation",
    "07_improved_translation.txt",
    "Improved Translation",
    deliverable=True,
)
SECOND_CRITIQUE = ArtifactSpec(
    ArtifactKey.SECOND_CRITIQUE, "second_critique", "08_second_critique.txt", "Second Critique"
)
FURTHER_IMPROVED_TRANSLATION = ArtifactSpec(
    ArtifactKey.FURTHER_IMPROVED_TRANSLATION,
    "further_improved_translation",
    "09_further_improved_translation.txt",
    "Further Improved Translation",
    deliverable=True,
)
REVIEW = ArtifactSpec(ArtifactKey.REVIEW, "review", "10_final_review.txt", "Final Review")
FINAL_TRANSLATION = ArtifactSpec(
    ArtifactKey.FINAL_TRANSLATION,
    "final_translation",
    "11_final_translation.txt",
    "Final Translation",
    deliverable=True,
)
EXTERNAL_REVIEW = ArtifactSpec(
    ArtifactKey.EXTERNAL_REVIEW, "external_review", "12_external_review.txt", "External Review"
)
REFINED_FINAL_TRANSLATION = ArtifactSpec(
    ArtifactKey.REFINED_FINAL_TRANSLATION,
    "refined_final_translation",
    "13_refined_final_translation.txt",
    "Refined Final Translation",
    deliverable=True,
)


def build_default_steps(
    *,
    skip_external_review: bool = False,
    prompts: PromptLibrary | None = None,
) -> tuple[StepDescriptor, ...]:
    """Return the ordered step table, without optional review steps when skipped."""

    library = prompts or PromptLibrary()

    def previous(context: PromptContext, key: ArtifactKey) -> str:
        return context.artifacts[key]

    steps = [
        StepDescriptor(
            step_id=StepId.INITIAL_ANALYSIS,
            name="Initial Analysis",
            build_prompt=lambda context: library.initial_analysis(
                context.target_language, context.source_language, context.source_text
            ),
            outputs=(ANALYSIS,),
        ),
        StepDescriptor(
            step_id=StepId.EXPRESSION_EXPLORATION,
            name="Expression Exploration",
            build_prompt=lambda context: library.expression_exploration(
                context.target_language, context.source_language
            ),
            outputs=(EXPRESSION_EXPLORATION,),
            prerequisites=(StepId.INITIAL_ANALYSIS,),
        ),
        StepDescriptor(
            step_id=StepId.CULTURAL_DISCUSSION,
            name="Cultural Adaptation Discussion",
            build_prompt=lambda context: library.cultural_discussion(
                context.target_language, context.source_language
            ),
            outputs=(CULTURAL_DISCUSSION,),
            prerequisites=(StepId.EXPRESSION_EXPLORATION,),
        ),
        StepDescriptor(
            step_id=StepId.TITLE_INSPIRATION,
            name="Title & Inspiration Exploration",
            build_prompt=lambda context: library.title_inspiration(
                context.target_language, context.source_language
            ),
            outputs=(TITLE_OPTIONS,),
            prerequisites=(StepId.CULTURAL_DISCUSSION,),
        ),
        StepDescriptor(
            step_id=StepId.FIRST_TRANSLATION,
            name="First Translation",
            build_prompt=lambda context: library.first_translation(
                context.target_language, context.source_language, context.source_text
            ),
            outputs=(FIRST_TRANSLATION,),
            prerequisites=(StepId.TITLE_INSPIRATION,),
        ),
        StepDescriptor(
            step_id=StepId.SELF_CRITIQUE,
            name="Self-Critique & First Refinement",
            build_prompt=lambda context: library.self_critique(
                context.target_language, previous(context, ArtifactKey.FIRST_TRANSLATION)
            ),
            outputs=(CRITIQUE, IMPROVED_TRANSLATION),
            prerequisites=(StepId.FIRST_TRANSLATION,),
            inputs=(ArtifactKey.FIRST_TRANSLATION,),
        ),
        StepDescriptor(
            step_id=StepId.SECOND_REFINEMENT,
            name="Second Refinement",
            build_prompt=lambda context: library.further_refinement(
                previous(context, ArtifactKey.IMPROVED_TRANSLATION)
            ),
            outputs=(SECOND_CRITIQUE, FURTHER_IMPROVED_TRANSLATION),
            prerequisites=(StepId.SELF_CRITIQUE,),
            inputs=(ArtifactKey.IMPROVED_TRANSLATION,),
        ),
        StepDescriptor(
            step_id=StepId.FINAL_TRANSLATION,
            name="Final Translation",
            build_prompt=lambda context: library.final_translation(
                context.target_language,
                context.source_language,
                previous(context, ArtifactKey.FURTHER_IMPROVED_TRANSLATION),
            ),
            outputs=(REVIEW, FINAL_TRANSLATION),
            prerequisites=(StepId.SECOND_REFINEMENT,),
            inputs=(ArtifactKey.FURTHER_IMPROVED_TRANSLATION,),
        ),
    ]
    if skip_external_review:
        return tuple(steps)

    steps.extend(
        [
            StepDescriptor(
                step_id=StepId.EXTERNAL_REVIEW,
                name="External Review",
                build_prompt=lambda context: library.external_review_user(
                    context.target_language,
                    context.source_language,
                    context.source_text,
                    previous(context, ArtifactKey.FINAL_TRANSLATION),
                ),
                outputs=(EXTERNAL_REVIEW,),
                prerequisites=(StepId.FINAL_TRANSLATION,),
                inputs=(ArtifactKey.FINAL_TRANSLATION,),
                fresh_branch=True,
                optional=True,
                system_prompt=lambda context: library.external_review_system(
                    context.target_language, context.source_language
                ),
                uses_review_model=True,
            ),
            StepDescriptor(
                step_id=StepId.FINAL_REFINEMENT,
                name="Final Refinement",
                build_prompt=lambda context: library.apply_external_feedback(
                    previous(context, ArtifactKey.FINAL_TRANSLATION),
                    previous(context, ArtifactKey.EXTERNAL_REVIEW),
                ),
                outputs=(REFINED_FINAL_TRANSLATION,),
                prerequisites=(StepId.FINAL_TRANSLATION, StepId.EXTERNAL_REVIEW),
                inputs=(ArtifactKey.FINAL_TRANSLATION, ArtifactKey.EXTERNAL_REVIEW),
                optional=True,
            ),
        ]
    )
    return tuple(steps)


def validate_step_table(steps: Sequence[StepDescriptor]) -> None:
    """Reject tables with unordered ids, unknown prerequisites, or shared filenames."""

    if not steps:
        raise ValueError("Step table must contain at least one step.")
    step_ids = [int(step.step_id) for step in steps]
    if step_ids != sorted(set(step_ids)) or step_ids[0] < 1:
        raise ValueError("Step ids must be positive, unique, and ascending.")
    filenames = [spec.filename for step in steps for spec in step.outputs]
    if len(filenames) != len(set(filenames)):
        raise ValueError("Each artifact filename must be produced by exactly one step.")
    known = set(step_ids)
    for step in steps:
        if not step.outputs:
            raise ValueError(f"Step {step.step_id} must declare at least one output.")
        for prerequisite in step.prerequisites:
            if prerequisite not in known or prerequisite >= step.step_id:
                raise ValueError(
                    f"Step {step.step_id} depends on unknown or later step {prerequisite}."
                )


def artifact_specs(steps: Sequence[StepDescriptor]) -> dict[ArtifactKey, ArtifactSpec]:
    """Index every output spec of a step table by artifact key."""

    return {spec.key: spec for step in steps for spec in step.outputs}
