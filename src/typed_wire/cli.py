"""Convert a JSON file to a named type and print its normalised wire form.

The value is converted forward to the requested type, then back to wire
form, so the output shows exactly what a caller of the engine would see:
defaults filled in, numbers checked against their widths, dates normalised.

Usage:
    typed-wire-convert value.json -t int32                # prints to stdout
    typed-wire-convert value.json -t "[Ljava.lang.String;"
    typed-wire-convert value.json -t MemoryUsage -c conversion.yaml
    typed-wire-convert value.json -t unknown -k pool.Usage --forgiving
    typed-wire-convert value.json -t double -o out.json   # writes to file
"""

import argparse
import logging
import sys
from pathlib import Path

from typed_wire.config import ConversionConfig, load_config
from typed_wire.context import ConversionContext
from typed_wire.engine import WireConverter
from typed_wire.errors import ConversionConfigError, ConversionError
from typed_wire.reverse import ObjectToWireConverter
from typed_wire.wire import dump_wire, parse_wire


def normalise(text: str, type_name: str, context: ConversionContext, key: str = "") -> str:
    """Convert JSON text to ``type_name`` and back, returning the resulting JSON."""
    descriptor = context.parse_type_name(type_name)
    value = WireConverter(context).convert(parse_wire(text), descriptor, key)
    wire = ObjectToWireConverter(context).to_wire(value, descriptor, key)
    return dump_wire(wire, indent=2)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Convert a JSON value to a named type and print its normalised wire form"
    )
    parser.add_argument("file", help="JSON file holding the value ('-' for stdin)")
    parser.add_argument("-t", "--type", required=True, help="Target type name, e.g. int32, [I or a configured shape")
    parser.add_argument("-k", "--key", default="", help="Qualified key of the value (default: none)")
    parser.add_argument("--forgiving", action="store_true", help="Leave unconvertible leaves unconverted")
    parser.add_argument("-c", "--config", help="YAML conversion config file")
    parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log type resolution details")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(Path(args.config)) if args.config else ConversionConfig()
        context = ConversionContext.from_config(config)
    except ConversionConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.forgiving:
        context = context.with_forgiving(True)

    if args.file == "-":
        text = sys.stdin.read()
    else:
        path = Path(args.file)
        if not path.exists():
            print(f"Error: {args.file} not found", file=sys.stderr)
            sys.exit(1)
        text = path.read_text(encoding="utf-8")

    try:
        output = normalise(text, args.type, context, args.key)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {out_path}", file=sys.stderr)
    else:
        print(output)


if __name__ == "__main__":
    main()
