"""
Prompt Manager - Builds generation prompts for the semantic graph.

Contains pure functions to build prompts from data.
No external API calls.
"""
from typing import Iterable, Tuple

# --- PROMPT TEMPLATES ---

RELATION_TYPES = (
    "synonym",
    "antonym",
    "near-synonym",
    "hypernym",
    "part-whole",
    "collocation",
    "look-alike",
    "cause-effect",
    "derivative",
    "scenario",
)

FALLBACK_RELATION = "related"

EDGE_LABEL_PROMPT = (
    "Analyze the semantic relationship between the following word pairs.\n"
    "For each pair, provide ONLY a precise relationship label.\n\n"
    "Allowed relationship types: {relation_types}.\n\n"
    "Constraints:\n"
    "1. Avoid \"{fallback}\" if a more specific relationship exists.\n"
    "2. Keep labels short (one or two words).\n"
    "3. If the words are unrelated, use \"{fallback}\".\n\n"
    "Pairs:\n{pairs}\n\n"
    "Return a JSON object with an \"items\" array, one entry per pair in order, "
    "each containing ONLY the \"label\" string.\n"
    "Example: {{\"items\": [{{\"label\": \"synonym\"}}, {{\"label\": \"antonym\"}}]}}"
)

BRIDGING_EXAMPLE_PROMPT = (
    "Create a contextual bridging sentence that naturally contains BOTH of the following words:\n"
    "1. Target word: \"{word_a}\"\n"
    "2. Related word: \"{word_b}\"\n\n"
    "Relationship context: the words are related as: {relation}.\n\n"
    "Requirements:\n"
    "1. The sentence should clearly demonstrate the relationship.\n"
    "2. Provide a natural translation of the sentence.\n\n"
    "Return strictly in JSON format:\n"
    "{{\"example\": \"...\", \"example_meaning\": \"...\"}}"
)

RELATED_WORDS_PROMPT = (
    "Generate 5-6 English words strongly related to \"{word}\".\n\n"
    "For each word, provide:\n"
    "1. The word itself.\n"
    "2. A concise meaning (max 10 characters).\n"
    "3. The relationship type (e.g. Synonym, Antonym, Collocation, Context, Look-alike, Derivative).\n\n"
    "Constraints:\n"
    "- The words should be suitable for English learners.\n"
    "- Do not include the target word itself.\n"
    "- Prefer a mix of relationship types.\n\n"
    "Return strictly in JSON format:\n"
    "{{\"items\": [{{\"word\": \"...\", \"meaning\": \"...\", \"relation\": \"...\"}}]}}"
)


class PromptManager:
    """Consolidated manager for prompt building."""

    @staticmethod
    def clean_word(word: str) -> str:
        if not word:
            return ""
        return str(word).replace('"', "'").strip()

    @staticmethod
    def build_edge_label_prompt(pairs: Iterable[Tuple[str, str]]) -> str:
        lines = [
            f"{i}. {PromptManager.clean_word(source)} - {PromptManager.clean_word(target)}"
            for i, (source, target) in enumerate(pairs, start=1)
        ]
        return EDGE_LABEL_PROMPT.format(
            relation_types=", ".join(RELATION_TYPES),
            fallback=FALLBACK_RELATION,
            pairs="\n".join(lines),
        )

    @staticmethod
    def build_example_prompt(word_a: str, word_b: str, relation: str = "") -> str:
        return BRIDGING_EXAMPLE_PROMPT.format(
            word_a=PromptManager.clean_word(word_a),
            word_b=PromptManager.clean_word(word_b),
            relation=relation or FALLBACK_RELATION,
        )

    @staticmethod
    def build_related_words_prompt(word: str) -> str:
        return RELATED_WORDS_PROMPT.format(word=PromptManager.clean_word(word))
