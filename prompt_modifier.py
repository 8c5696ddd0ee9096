from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Tuple

import prompts_lib

logger = logging.getLogger(__name__)

Rewriter = Callable[[str, str], Awaitable[str]]


class PromptValidationError(ValueError):
    pass


class ModificationType(str, Enum):
    NO_SPECIFIC = "no_specific"
    SPECIFY = "specify"


class QualityOption(str, Enum):
    NONE = "none"
    EIGHT_K_CINEMATIC_LIGHTING = "8k_cinematic_lighting"


class AspectRatioOption(str, Enum):
    NONE = "none"
    PORTRAIT = "9:16"
    LANDSCAPE = "16:9"


class StyleOption(str, Enum):
    NONE = "none"
    REALISTIC_PHOTOGRAPHY = "realistic_photography"


class FocalLengthOption(str, Enum):
    NONE = "none"
    MM_10 = "10mm"
    MM_25 = "25mm"
    MM_35 = "35mm"


class FacialExpressionOption(str, Enum):
    NONE = "none"
    EXAGGERATED_FEAR = "exaggerated_fear"
    EXAGGERATED_ANGER = "exaggerated_anger"
    EXAGGERATED_JOY = "exaggerated_joy"
    EXAGGERATED_CRYING = "exaggerated_crying"
    EXAGGERATED_PAIN = "exaggerated_pain"


class ConsistencyOption(str, Enum):
    NONE = "none"
    ABSOLUTE_CONSISTENCY = "absolute_consistency"


@dataclass(frozen=True)
class ModificationRequest:
    original_prompt: str
    modification_type: ModificationType = ModificationType.NO_SPECIFIC
    specific_instruction: str = ""
    quality: QualityOption = QualityOption.NONE
    aspect_ratio: AspectRatioOption = AspectRatioOption.NONE
    style: StyleOption = StyleOption.NONE
    focal_length: FocalLengthOption = FocalLengthOption.NONE
    facial_expression: FacialExpressionOption = FacialExpressionOption.NONE
    consistency: ConsistencyOption = ConsistencyOption.NONE

    @property
    def effective_instruction(self) -> str:
        if self.modification_type is not ModificationType.SPECIFY:
            return ""
        return self.specific_instruction

    def toggles(self) -> List[Tuple[Enum, Dict[str, str]]]:
        # Order here is the order the directives appear in the instruction.
        return [
            (self.quality, prompts_lib.quality_directives),
            (self.aspect_ratio, prompts_lib.aspect_ratio_directives),
            (self.style, prompts_lib.style_directives),
            (self.focal_length, prompts_lib.focal_length_directives),
            (self.facial_expression, prompts_lib.facial_expression_directives),
            (self.consistency, prompts_lib.consistency_directives),
        ]


def validate_request(request: ModificationRequest) -> None:
    if not request.original_prompt.strip():
        raise PromptValidationError(prompts_lib.empty_prompt_message)


def build_user_instruction(request: ModificationRequest) -> str:
    """Compose the user instruction for a modification request.

    Same request, same text: the base prompt, then the explicit instruction
    or the creative-improvement directive, then one phrase per active toggle
    in fixed category order, then the closing directive.
    """
    parts = [prompts_lib.original_prompt_template.format(prompt=request.original_prompt)]

    instruction = request.effective_instruction
    if instruction:
        parts.append(prompts_lib.specific_instruction_template.format(instruction=instruction))
    else:
        parts.append(prompts_lib.creative_improve_directive)

    for value, directives in request.toggles():
        if value.value != "none":
            parts.append(directives[value.value])

    parts.append(prompts_lib.return_only_prompt_directive)
    return "".join(parts)


async def submit_modification(request: ModificationRequest, rewrite: Rewriter) -> str:
    """Validate ``request``, build its instruction and make one rewrite call.

    The rewritten prompt is returned exactly as the service sent it.
    """
    validate_request(request)
    user_instruction = build_user_instruction(request)
    logger.debug("Modification instruction: %s", user_instruction)
    return await rewrite(prompts_lib.modify_prompt_system_instruction, user_instruction)
