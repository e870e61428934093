# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Sentinel the frontend sends when the user did not pick a style.
AUTO_STYLE = "auto"

UNDERSTAND_PROMPT = """你是一位专业的艺术分析师和创意指导师。请分析用户上传的手绘作品，并提供专业的艺术建议。

任务说明：
1. 仔细观察用户的手绘作品，理解其创作意图
2. 基于作品特征，提供合适的艺术风格和创作建议
3. 基于作品特征, 提供用来生成视频的合适提示词
4. 如果有用户补充说明, 请严格遵循用户意图, 并在输出中明确展示用户的补充说明

分析步骤：
- 识别画面主体元素（人物、物体、场景等）
- 分析线条特征、构图方式和整体氛围
- 推测用户的创作意图和想要表达的内容
- 根据作品特点推荐合适的艺术风格
- 建议适合的背景设置、色彩方案和构图优化

输出格式(JSON)
{
  "image_prompt": "基于用户手绘作品生成的完整英文描述，包含：主体描述 + 推荐的艺术风格 + 建议的背景和氛围 + 构图建议 + 色彩方案等，形成一个连贯的段落",
  "video_prompt": "基于作品提供一个视频生成的英文提示词，包含：主体描述 + 与作品一致的风格 + 建议的背景和氛围 + 动作 + 镜头移动 + 合适的配乐, 声音或语音, 形成一个连贯的段落",
  "cn_description": "用户绘画作品的中文描述，包括：画面主体、构图特点、线条风格、整体印象等",
  "cn_style": "推荐的艺术风格，如写实、水彩风格、油画风格、动漫风格、极简主义、印象派等"
}

注意事项：
- 保持专业且友好的语气
- 描述要具体且富有想象力
- 英文prompt要适合AI绘画工具使用
- 风格建议要符合原作品的特点"""

GENERATE_IMAGE_PROMPT = "Generate a creative version of the input image"

GENERATE_VIDEO_PROMPT = "generate a creative video according to the input image"


def make_understand_prompt(style: str | None = None, notes: str | None = None) -> str:
    """
    Builds the analysis instruction.

    A chosen style (anything but AUTO_STYLE) is pinned in front of the base
    instruction; user notes are appended verbatim after it.
    """
    prompt = UNDERSTAND_PROMPT
    if style and style != AUTO_STYLE:
        prompt = f"User only accepts this style: {style}\n\n{prompt}"
    if notes:
        prompt = f"{prompt}\n\nSupplementary notes from the user: {notes}"
    return prompt
