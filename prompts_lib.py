caption_to_prompt_instruction = (
    "详细描述这张图片，包括元素、构图、光照和风格。"
    "为生成式AI艺术模型生成一个简洁、高质量、富有创意的中文提示词，该提示词可以重现这张图片或类似的图片。"
    "提示词应适合生成写实或艺术风格的图片。"
    "不要包含任何关于图片来源或质量的元信息，只需提供提示词本身。"
)

modify_prompt_system_instruction = (
    "你是一位专业的AI提示词工程师，擅长提炼和优化图片生成提示词。"
    "你的目标是根据质量、长宽比和风格的具体指令，修改给定的提示词。"
    "生成一个改进后的中文提示词。"
)

original_prompt_template = '原始提示词: "{prompt}"\n\n'
specific_instruction_template = '具体修改指令: "{instruction}"\n'
creative_improve_directive = "创造性地优化此提示词。\n"
return_only_prompt_directive = "\n仅提供优化后的提示词，不包含任何额外的对话文本或解释。"

empty_prompt_message = "原始提示词不能为空。"

# Directive phrases keyed by toggle value.
quality_directives = {
    "8k_cinematic_lighting": "确保输出提示词包含8K分辨率和电影打光效果。",
}

aspect_ratio_directives = {
    "9:16": "建议使用9:16（肖像）长宽比。",
    "16:9": "建议使用16:9（横向）长宽比。",
}

style_directives = {
    "realistic_photography": "建议使用写实写真风格。",
}

focal_length_directives = {
    "10mm": "使用10mm焦距。",
    "25mm": "使用25mm焦距。",
    "35mm": "使用35mm焦距。",
}

facial_expression_directives = {
    "exaggerated_fear": "面部特写，表情夸张恐惧。",
    "exaggerated_anger": "面部特写，表情夸张愤怒。",
    "exaggerated_joy": "面部特写，表情夸张喜悦。",
    "exaggerated_crying": "面部特写，表情夸张流泪。",
    "exaggerated_pain": "面部特写，表情夸张痛苦。",
}

consistency_directives = {
    "absolute_consistency": "保持人物、动物、角色和场景的绝对一致性，并确保每个镜头能够自然衔接前后画面。",
}
