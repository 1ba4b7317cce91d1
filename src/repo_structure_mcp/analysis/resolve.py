from collections.abc import Collection, Mapping

DEFAULT_ALIASES: dict[str, str] = {"@/": "src/"}

RESOLVABLE_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".json", ".py")
INDEX_FILE_NAMES: tuple[str, ...] = ("index.ts", "index.tsx", "index.js", "index.jsx", "__init__.py")
PYTHON_SOURCE_ROOTS: tuple[str, ...] = ("", "src/")


def dirname(path: str) -> str:
    return path.rpartition("/")[0]


def normalize_path(base_directory: str, relative_path: str) -> str | None:
    """Join a relative path onto a directory, collapsing `.` and `..` segments.

    Returns None if the path climbs above the repository root."""

    segments: list[str] = [segment for segment in base_directory.split("/") if segment]

    for segment in relative_path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                return None
            segments.pop()
            continue
        segments.append(segment)

    return "/".join(segments)


def _match_known_path(candidate: str, known_paths: Collection[str]) -> str | None:
    if candidate in known_paths:
        return candidate

    for extension in RESOLVABLE_EXTENSIONS:
        if (with_extension := candidate + extension) in known_paths:
            return with_extension

    for index_file_name in INDEX_FILE_NAMES:
        if (index_file := f"{candidate}/{index_file_name}".lstrip("/")) in known_paths:
            return index_file

    return None


def resolve_import_path(
    current_file: str,
    specifier: str,
    known_paths: Collection[str] | None = None,
    aliases: Mapping[str, str] = DEFAULT_ALIASES,
) -> str | None:
    """Resolve an import specifier written in `current_file` to a repository-relative path.

    Relative specifiers are resolved against the directory of the importing file, alias prefixes such as
    `@/` are rewritten, and `/`-rooted specifiers are resolved from the repository root. Bare package names
    are not resolved.

    When `known_paths` is given, the specifier must name one of those paths, either exactly, with one of the
    source extensions appended, or as a directory holding an index file. Without `known_paths` the normalized
    path is returned as-is, with the empty string standing for the repository root.
    """

    candidate: str | None

    for prefix, target in aliases.items():
        if specifier.startswith(prefix):
            candidate = normalize_path(target, specifier.removeprefix(prefix))
            break
    else:
        if specifier.startswith("."):
            candidate = normalize_path(dirname(current_file), specifier)
        elif specifier.startswith("/"):
            candidate = normalize_path("", specifier)
        else:
            return None

    if candidate is None:
        return None

    if known_paths is None:
        return candidate

    return _match_known_path(candidate, known_paths)


def find_python_submodule(package_directory: str, names: list[str], known_paths: Collection[str]) -> str | None:
    """Return the first imported name that is a module or subpackage of `package_directory`."""

    for name in names:
        for candidate in (f"{package_directory}/{name}.py", f"{package_directory}/{name}/__init__.py"):
            if (candidate := candidate.lstrip("/")) in known_paths:
                return candidate

    return None


def resolve_python_relative_import(current_file: str, specifier: str, names: list[str], known_paths: Collection[str]) -> str | None:
    """Resolve a relative Python import such as `from .models import user`.

    When the specifier names a package, an imported name that is a submodule of that package wins over the
    package's `__init__.py`."""

    if (package_directory := normalize_path(dirname(current_file), specifier)) is None:
        return None

    target = _match_known_path(package_directory, known_paths)

    # `from . import name` arrives as `./name`, a name that is not a module is an attribute of the package
    if names == [package_directory.rpartition("/")[2]]:
        if target is None and (package_init := f"{dirname(package_directory)}/__init__.py".lstrip("/")) in known_paths:
            return package_init
        return target

    if target is None or target.endswith("__init__.py"):
        return find_python_submodule(package_directory, names, known_paths) or target

    return target


def resolve_python_module(module: str, names: list[str], known_paths: Collection[str]) -> str | None:
    """Resolve an absolute Python module such as `package.sub.module` to a file in the repository.

    `from package import module` names a module rather than an attribute, so each imported name is tried
    as a submodule when the module is a package or is not found."""

    module_path = module.replace(".", "/")

    for source_root in PYTHON_SOURCE_ROOTS:
        base = source_root + module_path

        if (module_file := f"{base}.py") in known_paths:
            return module_file

        if (package_init := f"{base}/__init__.py") in known_paths:
            return find_python_submodule(base, names, known_paths) or package_init

        if submodule := find_python_submodule(base, names, known_paths):
            return submodule

    return None
