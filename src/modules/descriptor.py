"""Module descriptor requests and their ``module-info.java`` rendering."""
from __future__ import annotations

import re
from dataclasses import dataclass
from io import StringIO
from typing import Optional, Tuple

_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.S)
_MODULE_DECLARATION_RE = re.compile(
    r"\b(?:open\s+)?module\s+([A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*)\s*\{"
)


def declared_module_name(source: str) -> Optional[str]:
    """The module name declared by ``module-info.java`` text, or None."""
    m = _MODULE_DECLARATION_RE.search(_COMMENT_RE.sub(" ", source))
    if m is None:
        return None
    return re.sub(r"\s+", "", m.group(1))


@dataclass(frozen=True)
class ExportsDirective:
    """``exports <package> [to <module>, ...]``"""

    package: str
    targets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RequiresDirective:
    """``requires [static] [transitive] <module>``"""

    name: str
    transitive: bool = False
    static: bool = False

    @property
    def modifiers(self) -> Tuple[str, ...]:
        result = []
        if self.static:
            result.append("static")
        if self.transitive:
            result.append("transitive")
        return tuple(result)


@dataclass(frozen=True)
class ModuleDescriptorRequest:
    """Everything a descriptor writer needs to emit one module descriptor.

    Collections are stored as sorted tuples so that two runs over the same
    inputs produce byte-identical descriptors.
    """

    module_name: str
    exports: Tuple[ExportsDirective, ...] = ()
    requires: Tuple[RequiresDirective, ...] = ()
    uses: Tuple[str, ...] = ()
    add_service_uses: bool = False
    main_class: Optional[str] = None
    # Literal module-info.java text supplied by the user; rendered as is
    source: Optional[str] = None

    @classmethod
    def create(cls, module_name, exports=(), requires=(), uses=(), add_service_uses=False, main_class=None):
        return cls(
            module_name=module_name,
            exports=tuple(sorted(exports, key=lambda e: e.package)),
            requires=tuple(sorted(requires, key=lambda r: r.name)),
            uses=tuple(sorted(set(uses))),
            add_service_uses=add_service_uses,
            main_class=main_class,
        )

    @classmethod
    def from_source(cls, module_name, source, main_class=None):
        """A request carrying user-written ``module-info.java`` text."""
        return cls(module_name=module_name, main_class=main_class, source=source)

    def as_module_info(self) -> str:
        """Gets this request expressed as the contents of a ``module-info.java`` file."""
        if self.source is not None:
            return self.source
        out = StringIO()
        print('module ' + self.module_name + ' {', file=out)
        for requires in self.requires:
            modifiers_string = (' '.join(requires.modifiers) + ' ') if requires.modifiers else ''
            print('    requires ' + modifiers_string + requires.name + ';', file=out)
        if self.requires and (self.exports or self.uses):
            print('', file=out)
        for export in self.exports:
            targets_string = (' to ' + ', '.join(export.targets)) if export.targets else ''
            print('    exports ' + export.package + targets_string + ';', file=out)
        if self.exports and self.uses:
            print('', file=out)
        for use in self.uses:
            print('    uses ' + use + ';', file=out)
        print('}', file=out)
        return out.getvalue()
