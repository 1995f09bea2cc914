"""Target language table: file extensions, default keywords and native types."""

from __future__ import annotations

from dataclasses import dataclass, field
from keyword import kwlist
from types import MappingProxyType
from typing import Mapping

from gable.core.errors import TargetConfigError
from gable.services.compiler.schema import FieldDef
from gable.services.compiler.types import BaseType, FieldType

B = BaseType


@dataclass(frozen=True)
class LanguageSpec:
    """How one consuming language names files, platforms and types.

    ``keyword`` is the default platform tag for targets of this language.
    ``list_pattern`` and ``vector_pattern`` are ``str.format`` templates.
    ``escape_pattern`` turns a reserved word into a usable identifier; without
    one, reserved field names are rejected.
    """

    tag: str
    extension: str
    keyword: str
    scalars: Mapping[BaseType, str]
    list_pattern: str
    vector_pattern: str
    boxed: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    reserved: frozenset[str] = frozenset()
    escape_pattern: str | None = None

    @property
    def template(self) -> str:
        return f"{self.tag}.j2"

    def identifier(self, name: str) -> str:
        """``name`` as a field identifier in this language.

        Raises:
            TargetConfigError: When ``name`` is reserved and cannot be escaped.
        """

        if name not in self.reserved:
            return name
        if self.escape_pattern is None:
            raise TargetConfigError(f"field '{name}' is a reserved word in {self.tag}")
        return self.escape_pattern.format(name)

    def element_name(self, field_type: FieldType) -> str:
        base = field_type.base
        if base is B.ENUM:
            return field_type.enum_name or self.scalars[B.INT]
        if base.is_vector:
            item = self.scalars[B.FLOAT]
            return self.vector_pattern.format(
                n=base.arity, item=item, items=", ".join([item] * base.arity)
            )
        return self.scalars[base]

    def boxed_name(self, type_name: str) -> str:
        """Name usable as a generic argument (Java needs ``Integer`` for ``int``)."""

        return self.boxed.get(type_name, type_name)

    def type_name(self, field_type: FieldType) -> str:
        element = self.element_name(field_type)
        if field_type.is_list:
            return self.list_pattern.format(self.boxed_name(element))
        return element

    def field_type_name(self, item: FieldDef) -> str:
        # Link fields keep their base type; the link is checked at compile time.
        return self.type_name(item.field_type)


def _scalars(
    int_: str, long_: str, float_: str, bool_: str, string: str
) -> Mapping[BaseType, str]:
    return MappingProxyType(
        {
            B.INT: int_,
            B.LONG: long_,
            B.FLOAT: float_,
            B.BOOL: bool_,
            B.STRING: string,
            B.TIME: int_,
            B.DATE: long_,
            B.PERCENTAGE: float_,
            B.PERMILLAGE: float_,
            B.PERMIAN: float_,
        }
    )


_CPP_RESERVED = frozenset(
    """
    alignas alignof and and_eq asm auto bitand bitor bool break case catch char
    char8_t char16_t char32_t class compl concept const consteval constexpr constinit
    const_cast continue co_await co_return co_yield decltype default delete do double
    dynamic_cast else enum explicit export extern false float for friend goto if
    inline int long mutable namespace new noexcept not not_eq nullptr operator or
    or_eq private protected public register reinterpret_cast requires return short
    signed sizeof static static_assert static_cast struct switch template this
    thread_local throw true try typedef typeid typename union unsigned using virtual
    void volatile wchar_t while xor xor_eq
    """.split()
)

_CSHARP_RESERVED = frozenset(
    """
    abstract as base bool break byte case catch char checked class const continue
    decimal default delegate do double else enum event explicit extern false finally
    fixed float for foreach goto if implicit in int interface internal is lock long
    namespace new null object operator out override params private protected public
    readonly ref return sbyte sealed short sizeof stackalloc static string struct
    switch this throw true try typeof uint ulong unchecked unsafe ushort using
    virtual void volatile while
    """.split()
)

_CANGJIE_RESERVED = frozenset(
    """
    as abstract break Bool case catch class const continue do else enum extend for
    func false finally foreign Float16 Float32 Float64 if in is init import interface
    Int8 Int16 Int32 Int64 IntNative let mut main macro match Nothing open operator
    override prop public package private protected quote redef return spawn super
    static struct synchronized try this true type throw This unsafe Unit UInt8 UInt16
    UInt32 UInt64 UIntNative var where while
    """.split()
)

_JAVA_RESERVED = frozenset(
    """
    abstract assert boolean break byte case catch char class const continue default
    do double else enum extends final finally float for goto if implements import
    instanceof int interface long native new package private protected public return
    short static strictfp super switch synchronized this throw throws transient try
    void volatile while true false null
    """.split()
)

_LUA_RESERVED = frozenset(
    """
    and break do else elseif end false for function goto if in local nil not or
    repeat return then true until while
    """.split()
)

# self, Self, super and crate cannot be raw identifiers.
_RUST_RESERVED = frozenset(
    """
    as break const continue else enum extern false fn for if impl in let loop match
    mod move mut pub ref return static struct trait true type unsafe use where while
    async await dyn abstract become box do final macro override priv typeof unsized
    virtual yield try
    """.split()
)


LANGUAGES: Mapping[str, LanguageSpec] = MappingProxyType(
    {
        "cpp": LanguageSpec(
            "cpp", "h", "cpp",
            _scalars("int32_t", "int64_t", "float", "bool", "std::string"),
            "std::vector<{}>", "std::array<float, {n}>",
            reserved=_CPP_RESERVED,
        ),
        "csharp": LanguageSpec(
            "csharp", "cs", "cs",
            _scalars("int", "long", "float", "bool", "string"),
            "List<{}>", "Vector{n}",
            reserved=_CSHARP_RESERVED, escape_pattern="@{}",
        ),
        "cangjie": LanguageSpec(
            "cangjie", "cj", "cj",
            _scalars("Int32", "Int64", "Float32", "Bool", "String"),
            "ArrayList<{}>", "Array<{item}>",
            reserved=_CANGJIE_RESERVED, escape_pattern="`{}`",
        ),
        # Go exports fields with an upper-case first letter, so keywords never collide.
        "go": LanguageSpec(
            "go", "go", "go",
            _scalars("int32", "int64", "float32", "bool", "string"),
            "[]{}", "[{n}]{item}",
        ),
        "java": LanguageSpec(
            "java", "java", "java",
            _scalars("int", "long", "float", "boolean", "String"),
            "List<{}>", "float[]",
            boxed=MappingProxyType(
                {"int": "Integer", "long": "Long", "float": "Float", "boolean": "Boolean"}
            ),
            reserved=_JAVA_RESERVED,
        ),
        "javascript": LanguageSpec(
            "javascript", "js", "js",
            _scalars("number", "number", "number", "boolean", "string"),
            "Array<{}>", "number[]",
        ),
        "lua": LanguageSpec(
            "lua", "lua", "lua",
            _scalars("integer", "integer", "number", "boolean", "string"),
            "{}[]", "number[]",
            reserved=_LUA_RESERVED,
        ),
        "python": LanguageSpec(
            "python", "py", "py",
            _scalars("int", "int", "float", "bool", "str"),
            "list[{}]", "tuple[{items}]",
            reserved=frozenset(kwlist),
        ),
        "rust": LanguageSpec(
            "rust", "rs", "rs",
            _scalars("i32", "i64", "f32", "bool", "String"),
            "Vec<{}>", "[{item}; {n}]",
            reserved=_RUST_RESERVED, escape_pattern="r#{}",
        ),
        "typescript": LanguageSpec(
            "typescript", "ts", "ts",
            _scalars("number", "number", "number", "boolean", "string"),
            "{}[]", "[{items}]",
        ),
    }
)

LANGUAGE_EXTENSIONS: Mapping[str, str] = MappingProxyType(
    {tag: spec.extension for tag, spec in LANGUAGES.items()}
)

_ALIASES = MappingProxyType(
    {
        "c": "cpp",
        "c++": "cpp",
        "cs": "csharp",
        "c#": "csharp",
        "cj": "cangjie",
        "golang": "go",
        "js": "javascript",
        "py": "python",
        "rs": "rust",
        "ts": "typescript",
    }
)


def normalize_language(tag: str | None) -> str:
    key = (tag or "").strip().lower()
    return _ALIASES.get(key, key)


def extension_for(tag: str | None) -> str:
    """File extension for a language tag, or ``""`` when the tag is unknown."""

    return LANGUAGE_EXTENSIONS.get(normalize_language(tag), "")


def language_spec(tag: str | None) -> LanguageSpec | None:
    return LANGUAGES.get(normalize_language(tag))


def default_keyword(tag: str | None) -> str:
    spec = language_spec(tag)
    return spec.keyword if spec is not None else ""


__all__ = [
    "LANGUAGES",
    "LANGUAGE_EXTENSIONS",
    "LanguageSpec",
    "default_keyword",
    "extension_for",
    "language_spec",
    "normalize_language",
]
