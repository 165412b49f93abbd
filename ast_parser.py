import os
import subprocess
import sys

from clang import cindex


if sys.platform == "darwin":
    _LIBRARY_NAMES = ("libclang.dylib",)
elif sys.platform.startswith("win"):
    _LIBRARY_NAMES = ("libclang.dll",)
else:
    _LIBRARY_NAMES = ("libclang.so", "libclang.so.1")

_WELL_KNOWN_DIRS = (
    "/opt/homebrew/opt/llvm/lib",
    "/usr/local/opt/llvm/lib",
    "/usr/lib/llvm/lib",
)

C_EXTENSIONS = {".c", ".h"}


def _library_in(directory):
    for name in _LIBRARY_NAMES:
        candidate = os.path.join(directory, name)
        if os.path.exists(candidate):
            return candidate
    return None


def _find_libclang():
    env_path = os.environ.get("LIBCLANG_FILE") or os.environ.get("LIBCLANG_PATH")
    if env_path:
        if os.path.isdir(env_path):
            found = _library_in(env_path)
            if found:
                return found
        elif os.path.exists(env_path):
            return env_path

    here = os.path.abspath(os.path.dirname(__file__))
    for directory in (here, os.path.join(here, "lib")) + _WELL_KNOWN_DIRS:
        found = _library_in(directory)
        if found:
            return found

    # Fall back to whatever clang.cindex finds on its own (e.g. the libclang wheel).
    return None


libclang_path = _find_libclang()
if libclang_path and not cindex.Config.loaded:
    cindex.Config.set_library_file(libclang_path)


class ParseCppError(RuntimeError):
    pass


def _translation_unit_failure_hint(filename):
    base = os.path.basename(filename)
    return (
        f"Could not parse '{base}'. "
        "This usually means severe syntax errors or a libclang that could not be loaded. "
        "Try: clang -fsyntax-only <file> to see compiler diagnostics."
    )


def _sdk_args():
    if sys.platform != "darwin":
        return []
    try:
        sdk_path = subprocess.check_output(
            ["xcrun", "--show-sdk-path"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return []
    if not sdk_path:
        return []
    return ["-isysroot", sdk_path, "-I", os.path.join(sdk_path, "usr/include/c++/v1")]


def language_args(filename):
    ext = os.path.splitext(filename)[1].lower()
    if ext in C_EXTENSIONS:
        return ["-x", "c", "-std=gnu11"]
    return ["-x", "c++", "-std=gnu++17"]


def parse_cpp_file(filename, extra_args=None):
    if not os.path.exists(filename):
        raise ParseCppError(f"Input file does not exist: {filename}")
    if not os.path.isfile(filename):
        raise ParseCppError(f"Input path is not a file: {filename}")

    args = language_args(filename) + _sdk_args() + list(extra_args or [])
    options = cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD

    try:
        index = cindex.Index.create()
        return index.parse(filename, args=args, options=options)
    except cindex.LibclangError as exc:
        raise ParseCppError(f"libclang could not be loaded: {exc}") from exc
    except cindex.TranslationUnitLoadError as exc:
        raise ParseCppError(_translation_unit_failure_hint(filename)) from exc
