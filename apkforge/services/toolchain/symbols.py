"""
Text symbol files.

aapt writes the resource identifiers of a project to ``R.txt``. Libraries
ship their own ``R.txt``; when an application is built, an ``R`` class is
generated for each library package using the identifiers assigned in the
application.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from ...core.exceptions import ToolchainError
from ...core.logging import get_logger

logger = get_logger(__name__)


class Symbol(BaseModel):
    """One resource identifier, e.g. ``int drawable icon 0x7f020000``."""

    type: str = Field(description="Java type, int or int[]")
    class_name: str = Field(description="Resource type, the inner R class")
    name: str = Field(description="Field name")
    value: str = Field(description="Java initializer")


class SymbolLoader:
    """Loads the symbols of an ``R.txt`` file."""

    def __init__(self, symbol_file: Path) -> None:
        self.symbol_file = Path(symbol_file)
        self._symbols: dict[tuple[str, str], Symbol] | None = None

    def load(self) -> SymbolLoader:
        """Parse the file.

        Raises:
            ToolchainError: If a line is malformed.
        """
        symbols: dict[tuple[str, str], Symbol] = {}
        lines = self.symbol_file.read_text(encoding="utf-8").splitlines()
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            parts = line.split(" ", 3)
            if len(parts) != 4:
                raise ToolchainError(
                    message=f"File format error reading {self.symbol_file} line {number}: '{line}'",
                    tool="aapt",
                )
            symbol = Symbol(type=parts[0], class_name=parts[1], name=parts[2], value=parts[3])
            symbols[(symbol.class_name, symbol.name)] = symbol
        self._symbols = symbols
        return self

    @property
    def symbols(self) -> dict[tuple[str, str], Symbol]:
        """Symbols keyed by (resource type, name)."""
        if self._symbols is None:
            self.load()
        return self._symbols  # type: ignore[return-value]


class SymbolWriter:
    """Writes an ``R.java`` for a library package with application values."""

    def __init__(
        self,
        source_output_dir: Path,
        package_name: str,
        symbols: SymbolLoader,
        values: SymbolLoader,
    ) -> None:
        """Initialize the writer.

        Args:
            source_output_dir: Root of the generated sources.
            package_name: Package of the library.
            symbols: The library symbols, selecting the fields to write.
            values: The application symbols, providing the values.
        """
        self.source_output_dir = Path(source_output_dir)
        self.package_name = package_name
        self.symbols = symbols
        self.values = values

    def write(self) -> Path:
        """Write the class and return its location."""
        grouped: dict[str, list[Symbol]] = {}
        for key, symbol in self.symbols.symbols.items():
            value = self.values.symbols.get(key)
            if value is None:
                logger.warning(
                    "Library symbol missing from the application",
                    package=self.package_name,
                    symbol=f"{symbol.class_name}.{symbol.name}",
                )
                continue
            grouped.setdefault(symbol.class_name, []).append(value)

        out = [
            "/* AUTO-GENERATED FILE.  DO NOT MODIFY.",
            " *",
            " * This class was automatically generated by the",
            " * aapt tool from the resource data it found.  It",
            " * should not be modified by hand.",
            " */",
            f"package {self.package_name};",
            "",
            "public final class R {",
        ]
        for class_name in sorted(grouped):
            out.append(f"    public static final class {class_name} {{")
            for symbol in sorted(grouped[class_name], key=lambda s: s.name):
                out.append(f"        public static final {symbol.type} {symbol.name} = {symbol.value};")
            out.append("    }")
        out.append("}")

        package_dir = self.source_output_dir.joinpath(*self.package_name.split("."))
        package_dir.mkdir(parents=True, exist_ok=True)
        r_file = package_dir / "R.java"
        r_file.write_text("\n".join(out) + "\n", encoding="utf-8")
        return r_file
