# orgmirror/utils/block_lexer.py

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from orgmirror.core.exceptions import ParseError
from orgmirror.utils.logger import logger


SUGGESTION_KIND = "suggestion"
MERMAID_KIND = "mermaid"

MERMAID_PLACEHOLDER = "MERMAID_DIAGRAM_PLACEHOLDER"

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}


@dataclass
class ExtractedBlock:
    """A verbatim multi-line payload lifted out of an LLM response."""

    kind: str
    placeholder: str
    raw: str

    @property
    def content(self) -> str:
        """The payload without its fences, as it will be re-injected."""
        text = self.restored_text()
        if self.kind == SUGGESTION_KIND:
            text = text[len("```suggestion") : -len("```")]
            text = text.strip("\n")
        return text

    def restored_text(self) -> str:
        trimmed = self.raw.strip("\n")
        return re.sub(
            r"\\(.)",
            lambda m: _ESCAPES.get(m.group(1), m.group(0)),
            trimmed,
            flags=re.DOTALL,
        )


class BlockLexer:
    """
    Swaps multi-line payloads for placeholder tokens and back.

    LLM responses embed fenced ``suggestion`` blocks and a ``mermaidDiagram``
    value that routinely carry raw newlines, which break JSON parsing. The
    lexer replaces each such payload with a unique token before parsing and
    re-injects the original text into the parsed structure afterwards.

    Invariant: every placeholder found in the parsed structure is replaced by
    exactly one extracted block, in extraction order.
    """

    SUGGESTION_PATTERN = re.compile(r"```suggestion([\s\S]*?)```")
    MERMAID_PATTERN = re.compile(r'"mermaidDiagram":\s*"((?:\\.|[^\\"])*)"')

    @staticmethod
    def suggestion_placeholder(index: int) -> str:
        return f"SUGGESTION_BLOCK_{index}_PLACEHOLDER"

    def extract(self, text: str) -> Tuple[str, List[ExtractedBlock]]:
        blocks: List[ExtractedBlock] = []

        def _replace_suggestion(match: re.Match) -> str:
            placeholder = self.suggestion_placeholder(len(blocks))
            blocks.append(ExtractedBlock(SUGGESTION_KIND, placeholder, match.group(0)))
            return placeholder

        processed = self.SUGGESTION_PATTERN.sub(_replace_suggestion, text)

        mermaid_match = self.MERMAID_PATTERN.search(processed)
        if mermaid_match:
            blocks.append(
                ExtractedBlock(MERMAID_KIND, MERMAID_PLACEHOLDER, mermaid_match.group(1))
            )
            processed = (
                processed[: mermaid_match.start()]
                + f'"mermaidDiagram": "{MERMAID_PLACEHOLDER}"'
                + processed[mermaid_match.end() :]
            )

        return processed, blocks

    def restore(
        self, parsed: Any, blocks: List[ExtractedBlock], strict: bool = False
    ) -> Tuple[Any, int]:
        """Re-inject blocks into ``parsed``; returns the structure and the count restored.

        Raises:
            ParseError: in ``strict`` mode, when the restored count differs from
                the number of extracted blocks.
        """
        if not blocks:
            return parsed, 0

        by_placeholder: Dict[str, ExtractedBlock] = {b.placeholder: b for b in blocks}
        restored: List[str] = []

        def _restore_string(value: str) -> str:
            for placeholder, block in by_placeholder.items():
                if placeholder not in value:
                    continue
                if placeholder in restored:
                    logger.warning(f"Placeholder {placeholder} appears more than once.")
                replacement = (
                    block.content if block.kind == MERMAID_KIND else block.restored_text()
                )
                value = value.replace(placeholder, replacement)
                restored.append(placeholder)
            return value

        def _walk(node: Any) -> Any:
            if isinstance(node, str):
                return _restore_string(node)
            if isinstance(node, list):
                return [_walk(item) for item in node]
            if isinstance(node, dict):
                return {key: _walk(value) for key, value in node.items()}
            return node

        result = _walk(parsed)

        if len(restored) != len(blocks):
            missing = [b.placeholder for b in blocks if b.placeholder not in restored]
            message = f"Restored {len(restored)} of {len(blocks)} extracted blocks; missing: {missing}"
            if strict:
                raise ParseError(message)
            logger.warning(message)
        return result, len(restored)
