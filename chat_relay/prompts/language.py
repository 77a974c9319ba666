"""基于关键词计数的粗粒度语言判断。"""

from typing import Literal

LanguageBucket = Literal["english", "mixed", "local"]

SWAHILI_WORDS = ("habari", "sasa", "niko", "kwani", "basi", "ndio", "karibu", "asante")
SHENG_WORDS = ("bro", "maze", "manze", "noma", "fiti", "safi", "buda", "msee", "mwana", "poa")

LANGUAGE_INSTRUCTIONS = {
    "local": "Respond fully in Swahili or Sheng naturally depending on tone.",
    "mixed": "Respond bilingually, mostly English with Swahili/Sheng mix.",
    "english": "Respond in English, friendly Kenyan developer tone.",
}


def detect_language(text: str) -> LanguageBucket:
    """统计两组关键词在小写文本中的出现个数（按子串匹配）。

    0 个 -> english，1~2 个 -> mixed，3 个及以上 -> local。
    """

    lower = text.lower()
    hits = sum(1 for w in SWAHILI_WORDS if w in lower)
    hits += sum(1 for w in SHENG_WORDS if w in lower)
    if hits == 0:
        return "english"
    if hits < 3:
        return "mixed"
    return "local"


def language_instruction(text: str) -> str:
    return LANGUAGE_INSTRUCTIONS[detect_language(text)]
