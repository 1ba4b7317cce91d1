"""Regex based extraction of imports, exports and declarations from source text.

The extractors work on the raw text of a file and do not build a syntax tree, so they can be fooled by
code inside strings or comments. They are tuned for the common shapes of ES module, CommonJS, Python
and Java source files.
"""

import re
from typing import Literal

from repo_structure_mcp.analysis.languages import COMPONENT_EXTENSIONS, get_file_extension, is_javascript_file, is_python_file
from repo_structure_mcp.models.structure import ClassInfo, ComponentInfo, FunctionInfo, ImportAnalysis, ImportType

SourceLanguage = Literal["javascript", "python", "java"]

LOCAL_SPECIFIER_PREFIXES: tuple[str, ...] = (".", "/")
DEFAULT_ALIAS_PREFIXES: tuple[str, ...] = ("@/",)

# JavaScript / TypeScript

JS_STATIC_IMPORT = re.compile(
    r"""^[ \t]*import\s+(?:type\s+)?(?P<clause>[\w$*{}\s,]+?)\s*from\s*['"](?P<source>[^'"]+)['"]""",
    re.MULTILINE,
)
JS_SIDE_EFFECT_IMPORT = re.compile(r"""^[ \t]*import\s*['"](?P<source>[^'"]+)['"]""", re.MULTILINE)
JS_DYNAMIC_IMPORT = re.compile(r"""\bimport\s*\(\s*['"`](?P<source>[^'"`]+)['"`]\s*\)""")
JS_REQUIRE = re.compile(
    r"""(?:\b(?:const|let|var)\s+(?P<binding>[\w$]+|\{[^}]*\})\s*=\s*)?\brequire\s*\(\s*['"](?P<source>[^'"]+)['"]\s*\)"""
)
JS_RE_EXPORT = re.compile(
    r"""^[ \t]*export\s+(?:type\s+)?(?P<clause>\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s*['"](?P<source>[^'"]+)['"]""",
    re.MULTILINE,
)

JS_NAMED_BLOCK = re.compile(r"\{(?P<names>[^}]*)\}")
JS_NAMESPACE = re.compile(r"\*\s*as\s+(?P<name>[\w$]+)")

JS_EXPORT_DECLARATION = re.compile(
    r"\bexport\s+(?:declare\s+)?(?:async\s+)?(?:const|let|var|function\*?|abstract\s+class|class|interface|type|enum)\s+(?P<name>[\w$]+)"
)
JS_EXPORT_DEFAULT = re.compile(r"\bexport\s+default\s+(?:async\s+)?(?:class|function\*?)?\s*(?P<name>[\w$]+)?")
JS_EXPORT_LIST = re.compile(r"\bexport\s*(?:type\s*)?\{(?P<names>[^}]*)\}")
JS_EXPORT_DEFAULT_KEYWORDS: frozenset[str] = frozenset({"new", "async", "function", "class", "default"})

JS_FUNCTION = re.compile(
    r"^[ \t]*(?P<export>export\s+(?:default\s+)?)?(?P<async>async\s+)?function\s*\*?\s*(?P<name>[\w$]+)\s*(?:<[^>(]*>)?\s*\((?P<params>[^)]*)\)",
    re.MULTILINE,
)
JS_ARROW_FUNCTION = re.compile(
    r"^[ \t]*(?P<export>export\s+)?(?:const|let|var)\s+(?P<name>[\w$]+)\s*(?::[^=\n]+)?=\s*(?P<async>async\s+)?"
    r"(?:\((?P<params>[^)]*)\)|(?P<param>[\w$]+))\s*(?::\s*[^=\n]+)?=>",
    re.MULTILINE,
)
JS_CLASS = re.compile(
    r"^[ \t]*(?P<export>export\s+(?:default\s+)?)?(?:abstract\s+)?class\s+(?P<name>[\w$]+)(?:\s*<[^>{]*>)?"
    r"(?:\s+extends\s+(?P<extends>[\w$.]+)(?:<[^>{]*>)?)?(?:\s+implements\s+(?P<implements>[\w$.,\s]+?))?\s*\{",
    re.MULTILINE,
)
REACT_COMPONENT_BASES: frozenset[str] = frozenset({"Component", "PureComponent", "React.Component", "React.PureComponent"})
HOOK_CALL = re.compile(r"\b(?P<name>use[A-Z][\w$]*)\s*\(")

# Python

PY_FROM_IMPORT = re.compile(r"^[ \t]*from\s+(?P<module>\.+[\w.]*|[\w.]+)\s+import\s+(?P<names>\([^)]*\)|[^\n#;]+)", re.MULTILINE)
PY_IMPORT = re.compile(r"^[ \t]*import\s+(?P<modules>[\w.]+(?:\s+as\s+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:\s+as\s+\w+)?)*)", re.MULTILINE)
PY_FUNCTION = re.compile(r"^(?P<indent>[ \t]*)(?P<async>async\s+)?def\s+(?P<name>\w+)\s*(?:\[[^\]]*\])?\s*\((?P<params>[^)]*)\)", re.MULTILINE)
PY_CLASS = re.compile(r"^(?P<indent>[ \t]*)class\s+(?P<name>\w+)\s*(?:\[[^\]]*\])?\s*(?:\((?P<bases>[^)]*)\))?\s*:", re.MULTILINE)
PY_PUBLIC_DEFINITION = re.compile(r"^(?:async\s+)?(?:def|class)\s+(?P<name>[A-Za-z]\w*)", re.MULTILINE)
PY_IGNORED_PARAMETERS: frozenset[str] = frozenset({"self", "cls", "/", ""})

# Java

JAVA_IMPORT = re.compile(r"^[ \t]*import\s+(?:static\s+)?(?P<module>[\w.]+(?:\.\*)?)\s*;", re.MULTILINE)
JAVA_PUBLIC_TYPE = re.compile(r"\bpublic\s+(?:abstract\s+|final\s+)*(?:class|interface|enum|record)\s+(?P<name>\w+)")


def get_source_language(name: str) -> SourceLanguage | None:
    if is_javascript_file(name):
        return "javascript"
    if is_python_file(name):
        return "python"
    if get_file_extension(name) == ".java":
        return "java"
    return None


def is_local_specifier(specifier: str, alias_prefixes: tuple[str, ...] = DEFAULT_ALIAS_PREFIXES) -> bool:
    """Whether an import specifier points inside the repository."""
    return specifier.startswith(LOCAL_SPECIFIER_PREFIXES) or specifier.startswith(alias_prefixes)


def line_number(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split on a separator that is not nested inside brackets."""

    parts: list[str] = []
    current: list[str] = []
    depth = 0

    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(0, depth - 1)

        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    parts.append("".join(current))

    return [part.strip() for part in parts if part.strip()]


def dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _split_named_list(names: str, use_alias: bool) -> list[str]:
    results: list[str] = []

    for item in names.split(","):
        item = " ".join(item.split()).removeprefix("type ")
        if not item:
            continue

        original, _, alias = item.partition(" as ")
        results.append(alias.strip() if use_alias and alias else original.strip())

    return results


def _parse_import_clause(clause: str) -> tuple[ImportType, list[str]]:
    clause = " ".join(clause.split())

    named: list[str] = []
    if match := JS_NAMED_BLOCK.search(clause):
        named = _split_named_list(match.group("names"), use_alias=False)
        clause = clause[: match.start()] + clause[match.end() :]

    namespace: str | None = None
    if match := JS_NAMESPACE.search(clause):
        namespace = match.group("name")
        clause = clause[: match.start()] + clause[match.end() :]

    default: str | None = next((part.strip() for part in clause.split(",") if part.strip()), None)

    import_type: ImportType = "namespace" if namespace else "default" if default else "named"

    return import_type, [name for name in (default, namespace) if name] + named


def _analyze_javascript_imports(content: str, alias_prefixes: tuple[str, ...]) -> list[ImportAnalysis]:
    found: list[tuple[int, ImportAnalysis]] = []

    def add(offset: int, source: str, import_type: ImportType, names: list[str]) -> None:
        is_external = not is_local_specifier(source, alias_prefixes)
        found.append((offset, ImportAnalysis(source=source, names=names, type=import_type, is_external=is_external)))

    for match in JS_STATIC_IMPORT.finditer(content):
        import_type, names = _parse_import_clause(match.group("clause"))
        add(match.start(), match.group("source"), import_type, names)

    for match in JS_SIDE_EFFECT_IMPORT.finditer(content):
        add(match.start(), match.group("source"), "side-effect", [])

    for match in JS_DYNAMIC_IMPORT.finditer(content):
        add(match.start(), match.group("source"), "dynamic", [])

    for match in JS_REQUIRE.finditer(content):
        binding: str | None = match.group("binding")
        if binding is None:
            names = []
        elif binding.startswith("{"):
            names = _split_named_list(binding.strip("{}").replace(":", " as "), use_alias=False)
        else:
            names = [binding]
        add(match.start(), match.group("source"), "require", names)

    for match in JS_RE_EXPORT.finditer(content):
        clause: str = match.group("clause")
        names = _split_named_list(clause.strip("{}"), use_alias=True) if clause.startswith("{") else []
        add(match.start(), match.group("source"), "re-export", names)

    return [analysis for _, analysis in sorted(found, key=lambda item: item[0])]


def python_module_to_specifier(module: str) -> str:
    """Convert a relative Python module reference such as `..models.base` to a path specifier like `../models/base`."""

    dots = len(module) - len(module.lstrip("."))
    if dots == 0:
        return module

    prefix = "./" if dots == 1 else "../" * (dots - 1)

    return prefix + module[dots:].replace(".", "/")


def _python_import_names(names: str) -> list[str]:
    names = names.strip().strip("()")
    return [name.split(" as ")[0].strip() for name in split_top_level(" ".join(names.split())) if name.split(" as ")[0].strip()]


def _analyze_python_imports(content: str) -> list[ImportAnalysis]:
    found: list[tuple[int, ImportAnalysis]] = []

    for match in PY_FROM_IMPORT.finditer(content):
        module: str = match.group("module")
        names = _python_import_names(match.group("names"))

        if not module.startswith("."):
            found.append((match.start(), ImportAnalysis(source=module, names=names, type="named", is_external=True)))
            continue

        specifier = python_module_to_specifier(module)

        if specifier.endswith("/"):
            # `from . import a, b` imports sibling modules
            for name in names:
                analysis = ImportAnalysis(source=specifier + name, names=[name], type="named", is_external=False)
                found.append((match.start(), analysis))
        else:
            found.append((match.start(), ImportAnalysis(source=specifier, names=names, type="named", is_external=False)))

    for match in PY_IMPORT.finditer(content):
        for module in split_top_level(match.group("modules")):
            module_name, _, alias = module.partition(" as ")
            module_name = module_name.strip()
            analysis = ImportAnalysis(source=module_name, names=[alias.strip() or module_name], type="module", is_external=True)
            found.append((match.start(), analysis))

    return [analysis for _, analysis in sorted(found, key=lambda item: item[0])]


def _analyze_java_imports(content: str) -> list[ImportAnalysis]:
    return [
        ImportAnalysis(source=match.group("module"), names=[match.group("module").rsplit(".", 1)[-1]], type="module", is_external=True)
        for match in JAVA_IMPORT.finditer(content)
    ]


def analyze_imports(
    content: str, language: SourceLanguage = "javascript", alias_prefixes: tuple[str, ...] = DEFAULT_ALIAS_PREFIXES
) -> list[ImportAnalysis]:
    """Find every import statement in a source file, in source order."""

    if language == "python":
        return _analyze_python_imports(content)
    if language == "java":
        return _analyze_java_imports(content)
    return _analyze_javascript_imports(content, alias_prefixes)


def extract_imports(
    content: str, language: SourceLanguage = "javascript", alias_prefixes: tuple[str, ...] = DEFAULT_ALIAS_PREFIXES
) -> list[str]:
    """Return the de-duplicated repository-local import specifiers of a source file."""

    return dedupe(
        [analysis.source for analysis in analyze_imports(content, language, alias_prefixes) if not analysis.is_external]
    )


def extract_exports(content: str, language: SourceLanguage = "javascript") -> list[str]:
    """Return the de-duplicated names exported by a source file."""

    names: list[str] = []

    if language == "python":
        names.extend(match.group("name") for match in PY_PUBLIC_DEFINITION.finditer(content))
    elif language == "java":
        names.extend(match.group("name") for match in JAVA_PUBLIC_TYPE.finditer(content))
    else:
        names.extend(match.group("name") for match in JS_EXPORT_DECLARATION.finditer(content))

        for match in JS_EXPORT_DEFAULT.finditer(content):
            if (name := match.group("name")) and name not in JS_EXPORT_DEFAULT_KEYWORDS:
                names.append(name)

        for match in JS_EXPORT_LIST.finditer(content):
            names.extend(_split_named_list(match.group("names"), use_alias=True))

    return [name for name in dedupe(names) if name != "default"]


def parse_parameters(params: str) -> list[str]:
    """Reduce a parameter list to parameter names, dropping type annotations and default values."""

    names: list[str] = []

    for parameter in split_top_level(" ".join(params.split())):
        name = (split_top_level(parameter, ":") or [""])[0]
        name = (split_top_level(name, "=") or [""])[0].lstrip("*.").rstrip("?").strip()

        if name not in PY_IGNORED_PARAMETERS:
            names.append(name)

    return names


def analyze_functions(content: str, language: SourceLanguage = "javascript") -> list[FunctionInfo]:
    functions: list[tuple[int, FunctionInfo]] = []

    if language == "python":
        for match in PY_FUNCTION.finditer(content):
            name: str = match.group("name")
            function = FunctionInfo(
                name=name,
                parameters=parse_parameters(match.group("params")),
                is_async=bool(match.group("async")),
                is_exported=not match.group("indent") and not name.startswith("_"),
                line=line_number(content, match.start("name")),
            )
            functions.append((match.start(), function))

    elif language == "javascript":
        for match in JS_FUNCTION.finditer(content):
            function = FunctionInfo(
                name=match.group("name"),
                parameters=parse_parameters(match.group("params")),
                is_async=bool(match.group("async")),
                is_exported=bool(match.group("export")),
                line=line_number(content, match.start("name")),
            )
            functions.append((match.start(), function))

        for match in JS_ARROW_FUNCTION.finditer(content):
            params: str = match.group("params") if match.group("params") is not None else match.group("param")
            function = FunctionInfo(
                name=match.group("name"),
                parameters=parse_parameters(params),
                is_async=bool(match.group("async")),
                is_exported=bool(match.group("export")),
                line=line_number(content, match.start("name")),
            )
            functions.append((match.start(), function))

    return [function for _, function in sorted(functions, key=lambda item: item[0])]


def analyze_classes(content: str, language: SourceLanguage = "javascript") -> list[ClassInfo]:
    classes: list[ClassInfo] = []

    if language == "python":
        for match in PY_CLASS.finditer(content):
            name: str = match.group("name")
            bases = [base for base in split_top_level(match.group("bases") or "") if "=" not in base]
            classes.append(
                ClassInfo(
                    name=name,
                    extends=bases[0] if bases else None,
                    implements=bases[1:],
                    is_exported=not match.group("indent") and not name.startswith("_"),
                    line=line_number(content, match.start("name")),
                )
            )

    elif language == "javascript":
        for match in JS_CLASS.finditer(content):
            implements: str = match.group("implements") or ""
            classes.append(
                ClassInfo(
                    name=match.group("name"),
                    extends=match.group("extends"),
                    implements=[name.strip() for name in implements.split(",") if name.strip()],
                    is_exported=bool(match.group("export")),
                    line=line_number(content, match.start("name")),
                )
            )

    return classes


def analyze_components(name: str, functions: list[FunctionInfo], classes: list[ClassInfo]) -> list[ComponentInfo]:
    """Treat capitalized functions and React component classes in JSX files as UI components."""

    if get_file_extension(name) not in COMPONENT_EXTENSIONS:
        return []

    components: list[ComponentInfo] = [
        ComponentInfo(name=function.name, is_exported=function.is_exported, line=function.line)
        for function in functions
        if function.name[:1].isupper()
    ]

    components.extend(
        ComponentInfo(name=cls.name, is_exported=cls.is_exported, line=cls.line)
        for cls in classes
        if cls.extends in REACT_COMPONENT_BASES
    )

    return sorted(components, key=lambda component: component.line)


def find_hooks(content: str) -> list[str]:
    return dedupe([match.group("name") for match in HOOK_CALL.finditer(content)])
