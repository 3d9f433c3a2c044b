"""Path parameter converters.

Built-in converters for route path segments like ``{id:int}``.
Captured values stay strings; converters only decide what matches.
"""


# Regex pattern for each supported converter
CONVERTERS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".+",
}
