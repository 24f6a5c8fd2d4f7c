"""missing_docstring_openai: exported functions that lack a docstring.

DO NOT RUN THIS LINT ON PRIVATE SOURCE CODE WITH AN API KEY SET: the source of
every undocumented exported function is sent to the completion service.

If OPENAI_API_KEY is set, the lint suggests a docstring drafted by OpenAI. The
prompt has the form:

    ```python
    <function source>
    ```
    An elaborate, high quality docstring for the above function:
    ```python

with the stop sequence "\\n```", so the model should stop once the second code
block is complete. The suggested docstring is the first triple-quoted string
in that block, if any.

Configuration ([missing_docstring_openai] table):
- prompt (default "An elaborate, high quality docstring for the above function:")
- model (default "gpt-3.5-turbo-instruct")
- max_tokens (default 1000)
- temperature (default 0.2, lower than the service default of 1.0)
- top_p, presence_penalty, frequency_penalty (default: service default)
"""
import inspect
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Set

from .base import LintRule
from ..analyzer.diagnostics import Applicability, Suggestion
from ..analyzer.syntax import Span, node_text, statements_of
from ..brain.llm import CompletionClient, CompletionError, CompletionRequest
from ..config import OPENAI_API_KEY, get_config, get_option


DEFAULT_PROMPT = "An elaborate, high quality docstring for the above function:"
DEFAULT_MODEL = "gpt-3.5-turbo-instruct"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.2

STOP = "\n```"

DOCSTRING_RE = re.compile(r'("""|\'\'\')(.*?)\1', re.DOTALL)
# A quote at the end of the text preceded by an even number of backslashes
TRAILING_QUOTE_RE = re.compile(r'(?<!\\)((?:\\\\)*)"\Z')
OVERLOAD_DECORATORS = {'overload', 'typing.overload', 'typing_extensions.overload'}


@dataclass
class DocstringConfig:
    """Options of the [missing_docstring_openai] table; None means "use the default"."""
    prompt: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    @classmethod
    def from_table(cls, table: Dict[str, Any]) -> 'DocstringConfig':
        """Read the known keys; unknown keys are ignored.

        Raises:
            ConfigError: If a known key has the wrong type
        """
        return cls(
            prompt=get_option(table, 'prompt', str),
            model=get_option(table, 'model', str),
            max_tokens=get_option(table, 'max_tokens', int),
            temperature=get_option(table, 'temperature', float),
            top_p=get_option(table, 'top_p', float),
            frequency_penalty=get_option(table, 'frequency_penalty', float),
            presence_penalty=get_option(table, 'presence_penalty', float),
        )


def extract_docstring(response: str) -> Optional[str]:
    """Pull the first triple-quoted string out of a completion.

    Models regularly echo the whole function or trail off into code after the
    docstring; everything outside the first string literal is ignored.

    Returns:
        Cleaned docstring text (no quotes), or None if there is none
    """
    match = DOCSTRING_RE.search(response)
    if match is None:
        return None
    text = inspect.cleandoc(match.group(2))
    return text or None


def escape_docstring(text: str) -> str:
    """Escape text so it can sit between triple double quotes.

    Backslashes are doubled, every run of three quotes is escaped, and so is a
    quote at the very end.
    """
    text = text.replace('\\', '\\\\').replace('"""', '\\"\\"\\"')
    return TRAILING_QUOTE_RE.sub(lambda m: m.group(1) + '\\"', text)


def render_docstring(text: str, indent: str) -> str:
    """Format docstring text as a double-quoted literal for a body indented by ``indent``."""
    lines = escape_docstring(text).splitlines()
    if len(lines) == 1:
        return f'"""{lines[0]}"""'

    rest = [f"{indent}{line}" if line.strip() else "" for line in lines[1:]]
    return "\n".join([f'"""{lines[0]}', *rest, f'{indent}"""'])


def has_docstring(function: Any) -> bool:
    statements = statements_of(function.child_by_field_name('body'))
    if not statements or statements[0].type != 'expression_statement':
        return False
    expression = statements[0].named_children
    return bool(expression) and expression[0].type in ('string', 'concatenated_string')


def module_exports(root: Any) -> Optional[Set[str]]:
    """Names listed in a literal module-level `__all__`, or None if there is none."""
    exports: Optional[Set[str]] = None
    for statement in root.named_children:
        if statement.type != 'expression_statement' or not statement.named_children:
            continue
        assignment = statement.named_children[0]
        if assignment.type not in ('assignment', 'augmented_assignment'):
            continue

        left = assignment.child_by_field_name('left')
        right = assignment.child_by_field_name('right')
        if left is None or node_text(left) != '__all__' or right is None:
            continue
        if right.type not in ('list', 'tuple'):
            # Computed __all__: cannot tell what is exported
            return None

        names = set()
        for item in right.named_children:
            if item.type != 'string':
                return None
            content = [c for c in item.named_children if c.type == 'string_content']
            names.add(node_text(content[0]) if content else '')

        if assignment.type == 'assignment' or exports is None:
            exports = names
        else:
            exports |= names
    return exports


def module_is_public(cx) -> bool:
    """A module is public when neither it nor any enclosing package is underscored."""
    path = cx.file_path or Path(cx.path)
    if path.stem.startswith('_') and path.stem != '__init__':
        return False
    if cx.file_path is None:
        return True

    directory = path.resolve().parent
    while (directory / '__init__.py').is_file():
        if directory.name.startswith('_'):
            return False
        directory = directory.parent
    return True


def is_overload(definition: Any) -> bool:
    if definition.type != 'decorated_definition':
        return False
    for decorator in definition.named_children:
        if decorator.type == 'decorator' and node_text(decorator).lstrip('@').strip() in OVERLOAD_DECORATORS:
            return True
    return False


class MissingDocstringOpenai(LintRule):
    """Checks for exported module-level functions missing a docstring."""

    name = 'missing_docstring_openai'
    description = 'exported function lacks a docstring (optionally drafted by OpenAI)'

    def __init__(self, client: Optional[CompletionClient] = None):
        """Initialize the rule.

        Args:
            client: Completion client to use instead of one built from OPENAI_API_KEY
        """
        self.config = DocstringConfig()
        self.env_config = get_config()
        self.client = client

    def configure(self, table, env_config):
        self.config = DocstringConfig.from_table(table)
        self.env_config = env_config

    def check_session(self, session):
        if self.client is None and not session.env_config.openai_api_key:
            session.warn(
                f"`{self.name}` suggestions are disabled because environment "
                f"variable `{OPENAI_API_KEY}` is not set"
            )

    def check_function(self, cx, node):
        definition = node.parent if node.parent.type == 'decorated_definition' else node
        if definition.parent is None or definition.parent.type != 'module':
            return

        name = node_text(node.child_by_field_name('name'))
        if name.startswith('_') or not module_is_public(cx):
            return

        exports = module_exports(cx.tree.root_node)
        if exports is not None and name not in exports:
            return

        if is_overload(definition) or has_docstring(node):
            return

        signature = self._signature_span(node)
        # Never send source for a lint that is allowed anyway
        if any(cx.is_allowed(self.name, n.start_point[0] + 1) for n in (definition, node)):
            return

        suggestion = None
        docstring = self._draft_docstring(cx, definition, signature)
        if docstring is not None:
            suggestion = self._insertion(cx, node, signature, docstring)

        cx.span_lint(self, signature, "exported function lacks a docstring", suggestion=suggestion)

    def _signature_span(self, node) -> Span:
        """From `def` (or `async`) to the end of the return annotation or parameter list."""
        end = node.child_by_field_name('return_type') or node.child_by_field_name('parameters')
        return Span(node.start_byte, end.end_byte)

    def _get_client(self) -> Optional[CompletionClient]:
        if self.client is None:
            api_key = self.env_config.openai_api_key
            if api_key:
                self.client = CompletionClient(api_key=api_key, base_url=self.env_config.openai_base_url)
        return self.client

    def _draft_docstring(self, cx, definition, signature: Span) -> Optional[str]:
        client = self._get_client()
        if client is None:
            return None

        request = self.request_from_snippet(node_text(definition))
        try:
            choices = client.complete(request)
        except CompletionError as e:
            cx.warn(signature, str(e))
            return None

        docstring = extract_docstring(choices[0]) if choices else None
        if docstring is None:
            cx.warn(signature, f"Could not extract docstring from response: {choices!r}")
        return docstring

    def _insertion(self, cx, node, signature: Span, docstring: str) -> Optional[Suggestion]:
        """Insert before the first body statement, when the body starts on its own line."""
        first = statements_of(node.child_by_field_name('body'))[0]
        line_start = cx.source.rfind(b'\n', 0, first.start_byte) + 1
        if line_start <= signature.end:
            return None

        indent = cx.source[line_start:first.start_byte].decode('utf-8', errors='replace')
        if indent.strip():
            return None

        return Suggestion(
            Span(first.start_byte, first.start_byte),
            f"{render_docstring(docstring, indent)}\n{indent}",
            "use the following suggestion from OpenAI",
            Applicability.MACHINE_APPLICABLE,
        )

    def request_from_snippet(self, snippet: str) -> CompletionRequest:
        config = self.config
        return CompletionRequest(
            prompt=self.prompt_from_snippet(snippet),
            model=config.model or DEFAULT_MODEL,
            max_tokens=config.max_tokens if config.max_tokens is not None else DEFAULT_MAX_TOKENS,
            temperature=config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE,
            top_p=config.top_p,
            frequency_penalty=config.frequency_penalty,
            presence_penalty=config.presence_penalty,
            stop=[STOP],
        )

    def prompt_from_snippet(self, snippet: str) -> str:
        return f"```python\n{snippet}\n```\n{self.config.prompt or DEFAULT_PROMPT}\n```python\n"
